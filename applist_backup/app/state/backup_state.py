from __future__ import annotations

from PySide6.QtCore import Property, QObject, Signal

from applist_backup.backup_engine.models import BackupArtifactRef, OrchestratorState


class BackupState(QObject):
    """Bindable backup state owned by the orchestrator.

    Only the orchestrator calls the ``_set_*`` helpers, and only on its own
    thread. Each helper returns whether the value actually changed.
    """

    permissionGrantedChanged = Signal(bool)
    lastArtifactUriChanged = Signal(str)
    loadingChanged = Signal(bool)

    def __init__(self, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._permission_granted = False
        self._last_artifact: BackupArtifactRef | None = None
        self._loading = False

    def _get_permission_granted(self) -> bool:
        return bool(self._permission_granted)

    permissionGranted = Property(bool, _get_permission_granted, notify=permissionGrantedChanged)  # type: ignore[arg-type]

    def _get_last_artifact_uri(self) -> str:
        return self._last_artifact.uri if self._last_artifact is not None else ""

    lastArtifactUri = Property(str, _get_last_artifact_uri, notify=lastArtifactUriChanged)  # type: ignore[arg-type]

    def _get_loading(self) -> bool:
        return bool(self._loading)

    loading = Property(bool, _get_loading, notify=loadingChanged)  # type: ignore[arg-type]

    def _get_destination_not_set(self) -> bool:
        return self._last_artifact is None

    destinationNotSet = Property(bool, _get_destination_not_set, notify=lastArtifactUriChanged)  # type: ignore[arg-type]

    @property
    def last_artifact(self) -> BackupArtifactRef | None:
        return self._last_artifact

    def snapshot(self) -> OrchestratorState:
        return OrchestratorState(
            permission_granted=self._permission_granted,
            last_artifact=self._last_artifact,
            loading=self._loading,
        )

    # ---- internal mutation helpers (called by the orchestrator) ----
    def _set_permission_granted(self, granted: bool) -> bool:
        v = bool(granted)
        if v == self._permission_granted:
            return False
        self._permission_granted = v
        self.permissionGrantedChanged.emit(v)
        return True

    def _set_last_artifact(self, ref: BackupArtifactRef | None) -> bool:
        if ref == self._last_artifact:
            return False
        self._last_artifact = ref
        self.lastArtifactUriChanged.emit(self._get_last_artifact_uri())
        return True

    def _set_loading(self, loading: bool) -> bool:
        v = bool(loading)
        if v == self._loading:
            return False
        self._loading = v
        self.loadingChanged.emit(v)
        return True
