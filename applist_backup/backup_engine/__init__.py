"""Backup Engine - storage-facing layer of the backup app.

This package provides the I/O-bound building blocks the orchestrator drives:
- Locating the latest artifact (locator)
- Producing a new artifact atomically (producer, formats, app_source)
- Reading an artifact back (reader)
- Notification permission status (permissions)

Usage:
    from applist_backup.backup_engine import ArtifactLocator, BackupProducer

    producer = BackupProducer(settings)
    ref = producer.produce(settings.destination_dir)
    assert ArtifactLocator(settings).locate_latest() == ref
"""

from .errors import (
    ArtifactLocateError,
    ArtifactProduceError,
    ArtifactReadError,
    BackupError,
    PermissionQueryError,
)
from .locator import ArtifactLocator
from .models import BackupArtifactRef, BackupContents, InstalledApp, OrchestratorState
from .producer import BackupProducer

__all__ = [
    "ArtifactLocateError",
    "ArtifactLocator",
    "ArtifactProduceError",
    "ArtifactReadError",
    "BackupArtifactRef",
    "BackupContents",
    "BackupError",
    "BackupProducer",
    "InstalledApp",
    "OrchestratorState",
    "PermissionQueryError",
]
