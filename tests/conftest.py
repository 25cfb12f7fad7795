"""Pytest configuration.

The orchestrator delivers worker results through queued Qt signals, so the
suite needs one application object for the whole session and a way to pump
its event loop from a test.
"""

from __future__ import annotations

import os
import time
from collections.abc import Callable
from typing import Any

import pytest

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

_APP: Any | None = None


def pytest_configure(config) -> None:  # noqa: ARG001
    """Ensure a QApplication exists before collecting/running tests."""

    from PySide6.QtWidgets import QApplication

    global _APP

    app = QApplication.instance()
    # Keep a strong ref so it isn't GC'd mid-session.
    _APP = app if app is not None else QApplication([])


def pytest_sessionfinish(session, exitstatus) -> None:  # noqa: ARG001
    """Attempt a clean Qt shutdown to avoid lingering threads at interpreter exit."""

    from PySide6.QtWidgets import QApplication

    app = QApplication.instance()
    if app is None:
        return
    app.quit()
    app.processEvents()


def _wait_until(predicate: Callable[[], bool], timeout: float = 5.0) -> bool:
    from PySide6.QtCore import QCoreApplication, QEventLoop

    deadline = time.monotonic() + timeout
    while True:
        QCoreApplication.processEvents(QEventLoop.ProcessEventsFlag.AllEvents, 20)
        if predicate():
            return True
        if time.monotonic() >= deadline:
            return False
        time.sleep(0.005)


@pytest.fixture
def wait_until() -> Callable[..., bool]:
    """Pump the Qt event loop until ``predicate()`` holds or the timeout expires."""
    return _wait_until


@pytest.fixture
def settings(tmp_path):
    from applist_backup.settings_manager import SettingsManager

    return SettingsManager(str(tmp_path / "config" / "settings.json"))


@pytest.fixture
def destination(tmp_path, settings):
    folder = tmp_path / "backups"
    folder.mkdir()
    settings.set("destination_dir", str(folder))
    return folder
