"""Inspect a previously produced artifact."""

from __future__ import annotations

from applist_backup.logger import get_logger

from .errors import ArtifactReadError
from .formats import format_for_name, parse_artifact
from .models import BackupArtifactRef, BackupContents

_logger = get_logger("reader")


def read_artifact(ref: BackupArtifactRef) -> BackupContents:
    """Load and parse the artifact behind ``ref``.

    Raises:
        ArtifactReadError: the artifact is missing, unreadable or malformed.
    """
    try:
        path = ref.path
    except ValueError as e:
        raise ArtifactReadError(str(e), context={"uri": ref.uri}) from e

    fmt = format_for_name(path.name)
    if fmt is None:
        raise ArtifactReadError(f"not a backup artifact: {path.name}", context={"uri": ref.uri})

    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ArtifactReadError(f"cannot read artifact: {e}", context={"uri": ref.uri}) from e

    contents = parse_artifact(text, fmt)
    _logger.debug("read artifact %s: %d apps", path.name, len(contents.apps))
    return contents
