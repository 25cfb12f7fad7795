"""Domain errors raised by the backup engine.

All of them are recoverable: the orchestrator catches them at its boundary,
keeps the previously published state and reports a transient failure.
"""

from __future__ import annotations

from typing import Any


class BackupError(Exception):
    """Base class for backup engine failures."""

    kind = "backup"

    def __init__(self, message: str, *, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context: dict[str, Any] = dict(context or {})


class PermissionQueryError(BackupError):
    """The permission status could not be read. Callers treat it as not granted."""

    kind = "permission_query"


class ArtifactLocateError(BackupError):
    """The backing storage could not be queried for the latest artifact."""

    kind = "artifact_locate"


class ArtifactProduceError(BackupError):
    """A new artifact could not be written. No partial artifact is left visible."""

    kind = "artifact_produce"


class ArtifactReadError(BackupError):
    """An artifact exists but could not be parsed."""

    kind = "artifact_read"
