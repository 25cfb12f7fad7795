from __future__ import annotations

from typing import Any

from PySide6.QtCore import QCoreApplication, QObject, Slot
from PySide6.QtWidgets import QApplication, QSystemTrayIcon

from applist_backup.app.orchestrator import BackupOrchestrator
from applist_backup.backup_engine.models import BackupArtifactRef
from applist_backup.logger import get_logger

_logger = get_logger("notifier")
_TITLE = "App List Backup"
_MESSAGE_TIMEOUT_MS = 5000


class BackupNotifier(QObject):
    """Tell the user how a backup ended.

    A tray message is shown only while the orchestrator reports the
    notification permission as granted; otherwise the outcome is just logged.
    """

    def __init__(self, orchestrator: BackupOrchestrator, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._orchestrator = orchestrator
        self._tray: QSystemTrayIcon | None = None
        self.delivered: list[tuple[str, str]] = []
        orchestrator.backupFinished.connect(self._on_backup_finished)
        orchestrator.errorOccurred.connect(self._on_error)

    def close(self) -> None:
        self._orchestrator.backupFinished.disconnect(self._on_backup_finished)
        self._orchestrator.errorOccurred.disconnect(self._on_error)
        if self._tray is not None:
            self._tray.hide()
            self._tray = None

    def _ensure_tray(self) -> QSystemTrayIcon | None:
        if self._tray is None and isinstance(QCoreApplication.instance(), QApplication):
            icon = QApplication.windowIcon()
            self._tray = QSystemTrayIcon(icon, self)
            self._tray.show()
        return self._tray

    def _notify(self, message: str, icon: QSystemTrayIcon.MessageIcon) -> None:
        if not self._orchestrator.snapshot().permission_granted:
            _logger.info("notification suppressed (not permitted): %s", message)
            return
        tray = self._ensure_tray()
        if tray is None:
            _logger.info("notification (no tray): %s", message)
            return
        tray.showMessage(_TITLE, message, icon, _MESSAGE_TIMEOUT_MS)
        self.delivered.append((_TITLE, message))

    @Slot(object)
    def _on_backup_finished(self, ref: BackupArtifactRef) -> None:
        self._notify(f"Backup saved: {ref.display_name}", QSystemTrayIcon.MessageIcon.Information)

    @Slot(dict)
    def _on_error(self, payload: dict[str, Any]) -> None:
        if payload.get("kind") != "artifact_produce":
            return
        self._notify(f"Backup failed: {payload.get('message', '')}", QSystemTrayIcon.MessageIcon.Warning)
