"""Notification permission status.

On the desktop "permission to notify" means: the user has not switched
notifications off in the settings, and the session can show tray messages.
"""

from __future__ import annotations

from typing import Protocol

from PySide6.QtCore import QCoreApplication
from PySide6.QtGui import QGuiApplication
from PySide6.QtWidgets import QSystemTrayIcon

from applist_backup.logger import get_logger
from applist_backup.settings_manager import SettingsManager

from .errors import PermissionQueryError

_logger = get_logger("permissions")


class PermissionStatusProvider(Protocol):
    def is_granted(self) -> bool: ...


class NotificationPermissionProvider:
    """Fast, side-effect-free notification permission query."""

    def __init__(self, settings: SettingsManager) -> None:
        self._settings = settings

    def _query_platform(self) -> bool:
        if not isinstance(QCoreApplication.instance(), QGuiApplication):
            raise PermissionQueryError("no GUI application; tray support unknown")
        try:
            return bool(QSystemTrayIcon.isSystemTrayAvailable() and QSystemTrayIcon.supportsMessages())
        except RuntimeError as e:
            raise PermissionQueryError(f"tray query failed: {e}") from e

    def is_granted(self) -> bool:
        if not self._settings.notifications_enabled:
            return False
        try:
            return self._query_platform()
        except PermissionQueryError as e:
            _logger.debug("permission indeterminate, treating as denied: %s", e)
            return False
