from __future__ import annotations

import contextlib
import os
import tempfile
from collections.abc import Callable
from datetime import datetime
from pathlib import Path

from applist_backup.logger import get_logger
from applist_backup.path_utils import abs_path
from applist_backup.settings_manager import SettingsManager

from .app_source import DistributionAppSource, InstalledAppsSource
from .errors import ArtifactProduceError
from .formats import FORMAT_SUFFIXES, artifact_filename, write_artifact
from .metrics import metrics
from .models import BackupArtifactRef

_logger = get_logger("producer")


class BackupProducer:
    """Write a new backup artifact atomically.

    The artifact is written to a hidden ``.part`` file in the destination,
    fsynced and renamed into place. ``last_backup_uri`` is persisted only after
    the rename, so a failed run leaves neither a visible file nor a new
    reference. Failures are reported, never retried here.
    """

    def __init__(
        self,
        settings: SettingsManager | None = None,
        source: InstalledAppsSource | None = None,
        *,
        fmt: str | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._settings = settings
        self._source = source or DistributionAppSource()
        self._fmt = fmt
        self._clock = clock

    def _format(self) -> str:
        if self._fmt:
            return self._fmt
        if self._settings is not None:
            return self._settings.backup_format
        return "json"

    def produce(self, destination: str | Path) -> BackupArtifactRef:
        dest = abs_path(destination)
        ctx = {"destination": str(dest)}
        if not dest.is_dir():
            raise ArtifactProduceError(f"destination is not a directory: {dest}", context=ctx)

        fmt = self._format()
        if fmt not in FORMAT_SUFFIXES:
            raise ArtifactProduceError(f"unsupported backup format: {fmt!r}", context={**ctx, "format": fmt})
        with metrics.timed("producer.produce"):
            try:
                apps = list(self._source.list_apps())
            except Exception as e:
                metrics.inc("producer.failed")
                raise ArtifactProduceError(f"failed to enumerate installed apps: {e}", context=ctx) from e

            created = self._clock()
            final = dest / artifact_filename(created, fmt)
            tmp: str | None = None
            try:
                fd, tmp = tempfile.mkstemp(prefix=".app-list-backup-", suffix=".part", dir=dest)
                with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
                    count = write_artifact(f, apps, fmt, created)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp, final)
                tmp = None
            except Exception as e:
                metrics.inc("producer.failed")
                raise ArtifactProduceError(f"failed to write backup: {e}", context=ctx) from e
            finally:
                if tmp is not None:
                    with contextlib.suppress(OSError):
                        os.unlink(tmp)

        ref = BackupArtifactRef.from_path(final)
        if self._settings is not None:
            self._settings.set("last_backup_uri", ref.uri)
        metrics.inc("producer.produced")
        _logger.info("backup written: %s (%d apps)", final, count)
        return ref
