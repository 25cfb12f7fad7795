"""Command line entry point.

Runs a Qt event loop so the CLI goes through the same orchestrator contract
as any other caller: work happens on the worker pool, results arrive as
state changes on the main thread.
"""

from __future__ import annotations

import argparse
import os
import sys
from collections.abc import Callable
from typing import Any

from PySide6.QtCore import QCoreApplication, QEventLoop

from applist_backup.app.orchestrator import BackupOrchestrator
from applist_backup.backup_engine.errors import ArtifactReadError
from applist_backup.backup_engine.locator import ArtifactLocator
from applist_backup.backup_engine.metrics import metrics
from applist_backup.backup_engine.models import BackupArtifactRef, OrchestratorState
from applist_backup.backup_engine.permissions import NotificationPermissionProvider
from applist_backup.backup_engine.producer import BackupProducer
from applist_backup.backup_engine.reader import read_artifact
from applist_backup.logger import get_logger, setup_logger
from applist_backup.ops.notifier import BackupNotifier
from applist_backup.ops.scheduler import BackupScheduler
from applist_backup.path_utils import abs_path, abs_path_str
from applist_backup.settings_manager import SettingsManager, default_settings_path

logger = get_logger("main")

APP_NAME = "applist-backup"
ORG_NAME = "androidlabs"
DESTINATION_NOT_SET = "destination not set"


def build_orchestrator(settings: SettingsManager) -> BackupOrchestrator:
    return BackupOrchestrator(
        ArtifactLocator(settings),
        BackupProducer(settings),
        NotificationPermissionProvider(settings),
        settings,
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog=APP_NAME, description="Back up the list of installed applications")
    parser.add_argument("--settings", help="Settings file (default: per-user config dir)")
    parser.add_argument("--log-level", help="Set log level")
    parser.add_argument("--log-cats", help="Set log categories (comma separated)")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("status", help="Show destination, last backup and notification permission")
    dest = sub.add_parser("set-destination", help="Configure the backup destination folder")
    dest.add_argument("path")
    sub.add_parser("backup", help="Produce a new backup and wait for it")
    sub.add_parser("last", help="Print the reference of the latest backup")
    sub.add_parser("show", help="List the applications stored in the latest backup")
    daemon = sub.add_parser("daemon", help="Run scheduled backups until interrupted")
    daemon.add_argument("--interval-hours", type=float, help="Override auto_backup_interval_hours")
    return parser


def _apply_logging_options(args: argparse.Namespace) -> None:
    if args.log_level:
        os.environ["APPLIST_BACKUP_LOG_LEVEL"] = args.log_level
    if args.log_cats:
        os.environ["APPLIST_BACKUP_LOG_CATS"] = args.log_cats
    setup_logger()


def _run_until(
    orchestrator: BackupOrchestrator,
    action: Callable[[], bool],
    done: Callable[[OrchestratorState], bool],
) -> tuple[OrchestratorState, dict[str, Any] | None]:
    """Run ``action`` and spin a local event loop until ``done`` or an error."""
    loop = QEventLoop()
    outcome: dict[str, Any] = {"state": orchestrator.snapshot(), "error": None}

    def on_error(payload: dict) -> None:
        outcome["error"] = payload
        loop.quit()

    def on_state(state: OrchestratorState) -> None:
        outcome["state"] = state
        if done(state):
            loop.quit()

    orchestrator.errorOccurred.connect(on_error)
    try:
        with orchestrator.subscribe(on_state):
            started = action()
            if started and outcome["error"] is None and not done(outcome["state"]):
                loop.exec()
    finally:
        orchestrator.errorOccurred.disconnect(on_error)
    return outcome["state"], outcome["error"]


def _resolve_last(orchestrator: BackupOrchestrator) -> tuple[BackupArtifactRef | None, dict | None]:
    state, error = _run_until(orchestrator, orchestrator.refresh_artifact_reference, lambda s: not s.loading)
    return state.last_artifact, error


def _cmd_status(settings: SettingsManager, orchestrator: BackupOrchestrator) -> int:
    granted = orchestrator.refresh_permission_status()
    ref, error = _resolve_last(orchestrator)
    dest = settings.destination_dir
    print(f"settings:      {settings.settings_path}")
    print(f"destination:   {dest if dest is not None else DESTINATION_NOT_SET}")
    print(f"last backup:   {ref.uri if ref is not None else '-'}")
    print(f"notifications: {'granted' if granted else 'not granted'}")
    if error is not None:
        print(f"error:         {error['message']}", file=sys.stderr)
        return 1
    return 0


def _cmd_set_destination(settings: SettingsManager, path: str) -> int:
    folder = abs_path(path)
    if not folder.is_dir():
        print(f"not a directory: {folder}", file=sys.stderr)
        return 2
    settings.set("destination_dir", str(folder))
    print(f"destination set: {settings.get('destination_dir')}")
    return 0


def _cmd_backup(orchestrator: BackupOrchestrator) -> int:
    finished: list[BackupArtifactRef] = []

    def on_finished(ref: BackupArtifactRef) -> None:
        finished.append(ref)

    orchestrator.backupFinished.connect(on_finished)
    try:
        state, error = _run_until(
            orchestrator,
            orchestrator.trigger_backup,
            lambda s: bool(finished) and not s.loading,
        )
    finally:
        orchestrator.backupFinished.disconnect(on_finished)
    if error is not None:
        print(f"backup failed: {error['message']}", file=sys.stderr)
        return 1
    ref = state.last_artifact or (finished[-1] if finished else None)
    print(ref.uri if ref is not None else DESTINATION_NOT_SET)
    return 0


def _cmd_last(orchestrator: BackupOrchestrator) -> int:
    ref, error = _resolve_last(orchestrator)
    if error is not None:
        print(f"lookup failed: {error['message']}", file=sys.stderr)
        return 1
    print(ref.uri if ref is not None else DESTINATION_NOT_SET)
    return 0


def _cmd_show(orchestrator: BackupOrchestrator) -> int:
    ref, error = _resolve_last(orchestrator)
    if error is not None:
        print(f"lookup failed: {error['message']}", file=sys.stderr)
        return 1
    if ref is None:
        print(DESTINATION_NOT_SET)
        return 0
    try:
        contents = read_artifact(ref)
    except ArtifactReadError as e:
        print(f"cannot read {ref.uri}: {e}", file=sys.stderr)
        return 1
    print(f"# {ref.display_name} ({contents.created_at}, {len(contents.apps)} apps)")
    for app in contents.apps:
        print(f"{app.package_name}\t{app.version}\t{app.name}")
    return 0


def _cmd_daemon(
    app: QCoreApplication, settings: SettingsManager, orchestrator: BackupOrchestrator, interval: float | None
) -> int:
    hours = settings.auto_backup_interval_hours if interval is None else interval
    scheduler = BackupScheduler(orchestrator)
    notifier = BackupNotifier(orchestrator)
    if not scheduler.start(hours):
        print("automatic backups are disabled (interval is 0)", file=sys.stderr)
        notifier.close()
        return 2
    orchestrator.refresh_permission_status()
    try:
        return app.exec()
    finally:
        scheduler.stop()
        notifier.close()
        snap = metrics.snapshot()
        logger.debug("daemon metrics: %s timings: %s", snap["counters"], snap["timing_totals"])


def run(argv: list[str] | None = None) -> int:
    """Application entrypoint (packaging-friendly)."""
    if argv is None:
        argv = sys.argv[1:]
    args = _build_parser().parse_args(argv)
    _apply_logging_options(args)

    QCoreApplication.setApplicationName(APP_NAME)
    QCoreApplication.setOrganizationName(ORG_NAME)
    app = QCoreApplication.instance() or QCoreApplication([APP_NAME])

    settings = SettingsManager(abs_path_str(args.settings) if args.settings else default_settings_path())
    if args.command == "set-destination":
        return _cmd_set_destination(settings, args.path)

    orchestrator = build_orchestrator(settings)
    try:
        if args.command == "status":
            return _cmd_status(settings, orchestrator)
        if args.command == "backup":
            return _cmd_backup(orchestrator)
        if args.command == "last":
            return _cmd_last(orchestrator)
        if args.command == "show":
            return _cmd_show(orchestrator)
        if args.command == "daemon":
            return _cmd_daemon(app, settings, orchestrator, args.interval_hours)
    finally:
        orchestrator.dispose()
    return 2


def main() -> None:
    sys.exit(run())


if __name__ == "__main__":
    main()
