from __future__ import annotations

from PySide6.QtCore import QObject, QTimer, Slot

from applist_backup.app.orchestrator import BackupOrchestrator
from applist_backup.logger import get_logger

_logger = get_logger("scheduler")
_MS_PER_HOUR = 3_600_000
# QTimer takes a signed 32-bit interval
_MAX_INTERVAL_MS = 2**31 - 1


class BackupScheduler(QObject):
    """Periodically call ``trigger_backup()`` on the orchestrator.

    Scheduled runs go through exactly the same entry point as a user request,
    so a tick during a running backup is simply rejected by the orchestrator.
    """

    def __init__(self, orchestrator: BackupOrchestrator, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._orchestrator = orchestrator
        self._timer = QTimer(self)
        self._timer.timeout.connect(self._on_timeout)
        self.ticks = 0

    @property
    def active(self) -> bool:
        return self._timer.isActive()

    @property
    def interval_ms(self) -> int:
        return self._timer.interval()

    def start(self, interval_hours: float) -> bool:
        """(Re)start the timer. A non-positive interval stops scheduling."""
        if interval_hours <= 0:
            self.stop()
            return False
        interval = min(_MAX_INTERVAL_MS, max(1, int(interval_hours * _MS_PER_HOUR)))
        self._timer.start(interval)
        _logger.info("automatic backups every %.2f h", interval_hours)
        return True

    def stop(self) -> None:
        if self._timer.isActive():
            self._timer.stop()
            _logger.info("automatic backups stopped")

    @Slot()
    def _on_timeout(self) -> None:
        self.ticks += 1
        if self._orchestrator.is_disposed:
            self.stop()
            return
        started = self._orchestrator.trigger_backup()
        _logger.debug("scheduled backup tick %d: started=%s", self.ticks, started)
