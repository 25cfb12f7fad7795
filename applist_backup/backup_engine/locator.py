from __future__ import annotations

from pathlib import Path

from applist_backup.logger import get_logger
from applist_backup.settings_manager import SettingsManager

from .errors import ArtifactLocateError
from .formats import is_artifact_name
from .models import BackupArtifactRef

_logger = get_logger("locator")


class ArtifactLocator:
    """Resolve the most recently produced backup artifact.

    Read-only: looks at the persisted ``last_backup_uri`` first, as long as it
    still points into the configured destination, and falls back to the newest
    complete artifact in that directory. Safe to call while the producer is
    writing because unfinished artifacts only exist under a temporary name that
    never matches.
    """

    def __init__(self, settings: SettingsManager) -> None:
        self._settings = settings

    def locate_latest(self) -> BackupArtifactRef | None:
        try:
            destination = self._settings.destination_dir
            if destination is None:
                _logger.debug("locate_latest: no destination configured")
                return None
            ref = self._from_stored_uri(destination)
            if ref is not None:
                return ref
            return self._newest_in(destination)
        except OSError as e:
            raise ArtifactLocateError(
                f"cannot query backup destination: {e}",
                context={"destination": str(self._settings.get("destination_dir"))},
            ) from e

    def _from_stored_uri(self, destination: Path) -> BackupArtifactRef | None:
        uri = self._settings.last_backup_uri
        if not uri:
            return None
        try:
            ref = BackupArtifactRef(uri)
            path = ref.path
        except ValueError:
            _logger.warning("ignoring unusable last_backup_uri: %s", uri)
            return None
        if path.parent != destination:
            _logger.debug("stored artifact is outside the current destination: %s", uri)
            return None
        if path.is_file() and is_artifact_name(path.name):
            return ref
        _logger.debug("stored artifact no longer resolvable: %s", uri)
        return None

    def _newest_in(self, destination: Path) -> BackupArtifactRef | None:
        names = [p.name for p in destination.iterdir() if is_artifact_name(p.name) and p.is_file()]
        if not names:
            return None
        # Timestamped names sort chronologically.
        newest = destination / max(names)
        _logger.debug("locate_latest: fell back to newest artifact %s", newest.name)
        return BackupArtifactRef.from_path(newest)
