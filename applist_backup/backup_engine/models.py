from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from applist_backup.path_utils import from_uri, to_uri


@dataclass(frozen=True)
class BackupArtifactRef:
    """Opaque, immutable locator of a backup artifact (a ``file://`` URI)."""

    uri: str

    @classmethod
    def from_path(cls, path: str | Path) -> BackupArtifactRef:
        return cls(to_uri(path))

    @property
    def path(self) -> Path:
        return from_uri(self.uri)

    @property
    def display_name(self) -> str:
        return self.path.name

    def __str__(self) -> str:
        return self.uri


@dataclass(frozen=True)
class InstalledApp:
    """One row of a backup: an installed application."""

    package_name: str
    name: str
    version: str = ""
    summary: str = ""


@dataclass(frozen=True)
class BackupContents:
    created_at: str
    format: str
    apps: tuple[InstalledApp, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class OrchestratorState:
    """Snapshot of the orchestrator state handed to subscribers."""

    permission_granted: bool = False
    last_artifact: BackupArtifactRef | None = None
    loading: bool = False

    @property
    def destination_not_set(self) -> bool:
        # The presentation layer shows "destination not set" whenever no artifact resolves.
        return self.last_artifact is None
