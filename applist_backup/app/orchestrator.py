"""Backup orchestrator: the stateful core between the engine and the UI.

Three independent lanes share one owner thread:

- permission: synchronous, cheap, republished on every refresh
- artifact reference: ``idle -> loading -> idle``, lookups run on the worker
  pool and at most one is in flight; extra requests coalesce into a single
  trailing rerun so an older result can never overwrite a newer one
- backup production: fire-and-forget on the worker pool, one run at a time

Worker results come back through private signals with queued connections, so
state is only ever mutated on the thread the orchestrator lives on. There is
no timeout: a lookup that hangs keeps ``loading`` true until it returns.
"""

from __future__ import annotations

import contextlib
import traceback
from collections.abc import Callable
from concurrent.futures import Executor, ThreadPoolExecutor
from pathlib import Path
from typing import Any

from PySide6.QtCore import QObject, Qt, Signal, SignalInstance, Slot

from applist_backup.app.lifecycle import StateSubscription
from applist_backup.app.state.backup_state import BackupState
from applist_backup.backup_engine.errors import ArtifactLocateError, ArtifactProduceError, BackupError
from applist_backup.backup_engine.locator import ArtifactLocator
from applist_backup.backup_engine.metrics import metrics
from applist_backup.backup_engine.models import BackupArtifactRef, OrchestratorState
from applist_backup.backup_engine.permissions import PermissionStatusProvider
from applist_backup.backup_engine.producer import BackupProducer
from applist_backup.logger import get_logger
from applist_backup.settings_manager import SettingsManager

_logger = get_logger("orchestrator")
_IO_WORKERS = 2


class BackupOrchestrator(QObject):
    """Owns the observable backup state and sequences the async operations.

    Signals:
        stateChanged: OrchestratorState snapshot, emitted when any field changes
            and on every permission refresh
        errorOccurred: {"kind", "message", "traceback", "context"} for a
            recoverable failure; the previous state stays published
        backupFinished: BackupArtifactRef of a freshly produced artifact
    """

    stateChanged = Signal(object)
    errorOccurred = Signal(dict)
    backupFinished = Signal(object)

    # worker -> owner thread: generation, result, error
    _locateDone = Signal(int, object, object)
    _produceDone = Signal(int, object, object)

    def __init__(
        self,
        locator: ArtifactLocator,
        producer: BackupProducer,
        permissions: PermissionStatusProvider,
        settings: SettingsManager | None = None,
        *,
        auto_refresh_after_backup: bool = True,
        executor: Executor | None = None,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._locator = locator
        self._producer = producer
        self._permissions = permissions
        self._settings = settings
        self._auto_refresh = bool(auto_refresh_after_backup)

        self._state = BackupState(self)
        self._published = self._state.snapshot()
        self._subscriptions: set[StateSubscription] = set()

        # Bumped on dispose; results tagged with an older generation are dropped.
        self._generation = 0
        self._locate_in_flight = False
        self._locate_rerun = False
        self._backup_running = False
        self._disposed = False

        self._owns_executor = executor is None
        self._executor: Executor = executor or ThreadPoolExecutor(
            max_workers=_IO_WORKERS, thread_name_prefix="applist-io"
        )

        self._locateDone.connect(self._on_locate_done, Qt.ConnectionType.QueuedConnection)
        self._produceDone.connect(self._on_produce_done, Qt.ConnectionType.QueuedConnection)
        _logger.debug("BackupOrchestrator initialized (auto_refresh=%s)", self._auto_refresh)

    # ═══════════════════════════════════════════════════════════════════════
    # State access
    # ═══════════════════════════════════════════════════════════════════════

    @property
    def state(self) -> BackupState:
        """Bindable QObject view of the state (Qt properties)."""
        return self._state

    def snapshot(self) -> OrchestratorState:
        return self._published

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    @property
    def is_backup_running(self) -> bool:
        return self._backup_running

    def subscribe(self, callback: Callable[[OrchestratorState], None]) -> StateSubscription:
        """Register ``callback`` for state changes.

        The current snapshot is delivered immediately. Release with
        ``close()`` on the returned subscription (or use it as a context
        manager); ``dispose()`` releases whatever is still open.
        """
        if self._disposed:
            raise RuntimeError("cannot subscribe to a disposed orchestrator")
        sub = StateSubscription(self.stateChanged, callback, on_close=self._subscriptions.discard)
        self._subscriptions.add(sub)
        callback(self._published)
        return sub

    def _publish(self, *, force: bool = False) -> None:
        snap = self._state.snapshot()
        if snap == self._published and not force:
            return
        self._published = snap
        self.stateChanged.emit(snap)

    def _report(self, error: BackupError, operation: str) -> None:
        payload: dict[str, Any] = {
            "kind": error.kind,
            "message": error.message,
            "traceback": "".join(traceback.format_exception(type(error), error, error.__traceback__)),
            "context": {"operation": operation, **error.context},
        }
        _logger.warning("%s failed: %s", operation, error.message)
        metrics.inc(f"orchestrator.error.{error.kind}")
        self.errorOccurred.emit(payload)

    @staticmethod
    def _emit_from_worker(signal: SignalInstance, *args: Any) -> None:
        # The orchestrator may have been destroyed while the worker ran.
        with contextlib.suppress(RuntimeError):
            signal.emit(*args)

    # ═══════════════════════════════════════════════════════════════════════
    # Permission lane
    # ═══════════════════════════════════════════════════════════════════════

    def refresh_permission_status(self) -> bool:
        """Re-read the permission and publish the state. Returns the observed value.

        Subscribers are notified on every call, including when the value did
        not change, so a resume always yields a fresh snapshot.
        """
        if self._disposed:
            return self._published.permission_granted
        try:
            granted = bool(self._permissions.is_granted())
        except Exception:
            _logger.debug("permission query failed, treating as not granted", exc_info=True)
            granted = False
        self._state._set_permission_granted(granted)
        self._publish(force=True)
        return granted

    # ═══════════════════════════════════════════════════════════════════════
    # Artifact reference lane
    # ═══════════════════════════════════════════════════════════════════════

    def refresh_artifact_reference(self) -> bool:
        """Resolve the latest artifact off the owner thread.

        Returns True when a new lookup was started, False when the request
        was folded into the lookup already in flight (or the orchestrator is
        disposed).
        """
        if self._disposed:
            return False
        if self._locate_in_flight:
            self._locate_rerun = True
            metrics.inc("orchestrator.refresh_coalesced")
            _logger.debug("refresh_artifact_reference coalesced into in-flight lookup")
            return False

        self._state._set_loading(True)
        self._publish()
        return self._dispatch_locate()

    def _dispatch_locate(self) -> bool:
        generation = self._generation
        self._locate_in_flight = True
        try:
            self._executor.submit(self._run_locate, generation)
        except RuntimeError as e:
            # Executor already shut down
            self._locate_in_flight = False
            self._locate_rerun = False
            self._report(ArtifactLocateError(f"cannot schedule lookup: {e}"), "refresh_artifact_reference")
            self._state._set_loading(False)
            self._publish()
            return False
        return True

    def _run_locate(self, generation: int) -> None:
        ref: BackupArtifactRef | None = None
        error: BackupError | None = None
        try:
            with metrics.timed("locator.locate_latest"):
                ref = self._locator.locate_latest()
        except ArtifactLocateError as e:
            error = e
        except Exception as e:
            _logger.exception("unexpected locator failure")
            error = ArtifactLocateError(f"unexpected locator failure: {e}")
            error.__cause__ = e
        self._emit_from_worker(self._locateDone, generation, ref, error)

    @Slot(int, object, object)
    def _on_locate_done(self, generation: int, ref: object, error: object) -> None:
        if self._disposed or generation != self._generation:
            metrics.inc("orchestrator.result_discarded")
            _logger.debug("discarding lookup result of generation %d", generation)
            return

        self._locate_in_flight = False
        if isinstance(error, BackupError):
            self._report(error, "refresh_artifact_reference")
        else:
            self._state._set_last_artifact(ref if isinstance(ref, BackupArtifactRef) else None)

        if self._locate_rerun:
            self._locate_rerun = False
            # loading stays true across the trailing lookup
            self._publish()
            self._dispatch_locate()
            return

        self._state._set_loading(False)
        self._publish()

    # ═══════════════════════════════════════════════════════════════════════
    # Backup production lane
    # ═══════════════════════════════════════════════════════════════════════

    def _resolve_destination(self, destination: str | Path | None) -> Path | None:
        if destination is not None:
            return Path(destination)
        if self._settings is not None:
            return self._settings.destination_dir
        return None

    def trigger_backup(self, destination: str | Path | None = None) -> bool:
        """Start producing a new artifact without blocking the caller.

        Completion is observed through ``backupFinished`` and, unless disabled,
        an automatic ``refresh_artifact_reference()``. Returns False when the
        request was not started (already running, no destination, disposed).
        """
        if self._disposed:
            _logger.warning("trigger_backup ignored: orchestrator disposed")
            return False
        if self._backup_running:
            metrics.inc("orchestrator.backup_rejected")
            _logger.info("trigger_backup ignored: a backup is already running")
            return False

        dest = self._resolve_destination(destination)
        if dest is None:
            self._report(ArtifactProduceError("no backup destination configured"), "trigger_backup")
            return False

        self._backup_running = True
        try:
            self._executor.submit(self._run_produce, self._generation, dest)
        except RuntimeError as e:
            self._backup_running = False
            self._report(ArtifactProduceError(f"cannot schedule backup: {e}"), "trigger_backup")
            return False
        _logger.info("backup started: %s", dest)
        return True

    def _run_produce(self, generation: int, destination: Path) -> None:
        ref: BackupArtifactRef | None = None
        error: BackupError | None = None
        try:
            ref = self._producer.produce(destination)
        except ArtifactProduceError as e:
            error = e
        except Exception as e:
            _logger.exception("unexpected producer failure")
            error = ArtifactProduceError(f"unexpected producer failure: {e}", context={"destination": str(destination)})
            error.__cause__ = e
        self._emit_from_worker(self._produceDone, generation, ref, error)

    @Slot(int, object, object)
    def _on_produce_done(self, generation: int, ref: object, error: object) -> None:
        if self._disposed or generation != self._generation:
            metrics.inc("orchestrator.result_discarded")
            _logger.debug("discarding backup result of generation %d", generation)
            return

        self._backup_running = False
        if isinstance(error, BackupError):
            self._report(error, "trigger_backup")
            return

        _logger.info("backup finished: %s", ref)
        self.backupFinished.emit(ref)
        if self._auto_refresh:
            self.refresh_artifact_reference()

    # ═══════════════════════════════════════════════════════════════════════
    # Teardown
    # ═══════════════════════════════════════════════════════════════════════

    def dispose(self) -> None:
        """Release every listener and drop results of in-flight work.

        Safe to call more than once and while operations are running.
        """
        if self._disposed:
            return
        self._disposed = True
        self._generation += 1

        for sub in list(self._subscriptions):
            sub.close()
        self._subscriptions.clear()

        self._locateDone.disconnect(self._on_locate_done)
        self._produceDone.disconnect(self._on_produce_done)

        if self._owns_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)
        _logger.debug("BackupOrchestrator disposed")
