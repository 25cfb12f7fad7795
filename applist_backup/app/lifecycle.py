"""Scoped subscriptions for presentation code.

A view subscribes while it is active and must release the subscription on
every exit path of that period. Nothing here relies on garbage collection to
drop a listener.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING

from PySide6.QtCore import QCoreApplication, QObject, Qt, SignalInstance
from PySide6.QtGui import QGuiApplication

from applist_backup.backup_engine.models import OrchestratorState
from applist_backup.logger import get_logger

if TYPE_CHECKING:
    from .orchestrator import BackupOrchestrator

_logger = get_logger("lifecycle")

StateCallback = Callable[[OrchestratorState], None]


class StateSubscription:
    """One listener connected to ``stateChanged``; released exactly once."""

    def __init__(
        self,
        signal: SignalInstance,
        callback: StateCallback,
        on_close: Callable[[StateSubscription], None] | None = None,
    ) -> None:
        self._signal = signal
        self._callback = callback
        self._on_close = on_close
        self._closed = False
        signal.connect(self._deliver)

    @property
    def closed(self) -> bool:
        return self._closed

    def _deliver(self, state: OrchestratorState) -> None:
        if not self._closed:
            self._callback(state)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._signal.disconnect(self._deliver)
        except RuntimeError:
            # The emitting QObject is already gone; nothing left to disconnect.
            _logger.debug("subscription source already destroyed")
        if self._on_close is not None:
            self._on_close(self)

    def __enter__(self) -> StateSubscription:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class LifecycleBinding(QObject):
    """Attach/detach a view to the orchestrator across its active periods.

    ``attach()`` (resume) subscribes and refreshes the permission status; the
    first attach also resolves the artifact reference. ``detach()`` (pause or
    destroy) releases the subscription. Optionally follows the Qt application
    state so that focus changes drive attach/detach.
    """

    def __init__(
        self,
        orchestrator: BackupOrchestrator,
        on_state: StateCallback,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._orchestrator = orchestrator
        self._on_state = on_state
        self._subscription: StateSubscription | None = None
        self._attached_once = False
        self._app: QGuiApplication | None = None

    @property
    def attached(self) -> bool:
        return self._subscription is not None

    def attach(self) -> None:
        if self._subscription is not None:
            return
        if self._orchestrator.is_disposed:
            _logger.debug("attach skipped: orchestrator disposed")
            return
        self._subscription = self._orchestrator.subscribe(self._on_state)
        self._orchestrator.refresh_permission_status()
        if not self._attached_once:
            self._attached_once = True
            self._orchestrator.refresh_artifact_reference()

    def detach(self) -> None:
        sub, self._subscription = self._subscription, None
        if sub is not None:
            sub.close()

    def follow_application_state(self, app: QGuiApplication | None = None) -> None:
        """Attach when the application becomes active, detach otherwise."""
        if self._app is not None:
            return
        app = app or QCoreApplication.instance()
        if not isinstance(app, QGuiApplication):
            _logger.debug("no GUI application; application state not followed")
            return
        self._app = app
        app.applicationStateChanged.connect(self._on_application_state)

    def stop_following(self) -> None:
        app, self._app = self._app, None
        if app is not None:
            app.applicationStateChanged.disconnect(self._on_application_state)

    def _on_application_state(self, state: Qt.ApplicationState) -> None:
        if state == Qt.ApplicationState.ApplicationActive:
            self.attach()
        else:
            self.detach()

    def close(self) -> None:
        self.stop_following()
        self.detach()

    def __enter__(self) -> LifecycleBinding:
        self.attach()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
