from __future__ import annotations

import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Any

from PySide6.QtCore import QStandardPaths

from .logger import get_logger
from .path_utils import abs_path, abs_path_str

_logger = get_logger("settings")

SETTINGS_ENV = "APPLIST_BACKUP_SETTINGS"
SUPPORTED_FORMATS = ("json", "csv")


def default_settings_path() -> str:
    """Resolve the settings file location.

    ``APPLIST_BACKUP_SETTINGS`` wins; otherwise the per-user Qt config dir.
    """
    env = (os.getenv(SETTINGS_ENV) or "").strip()
    if env:
        return abs_path_str(env)
    base = QStandardPaths.writableLocation(QStandardPaths.StandardLocation.AppConfigLocation)
    if not base:
        base = str(Path.home() / ".applist_backup")
    return abs_path_str(Path(base) / "settings.json")


class SettingsManager:
    """JSON-backed settings store.

    The producer persists ``last_backup_uri`` from a worker thread, so every
    access goes through a re-entrant lock and saves replace the file atomically.
    """

    DEFAULTS: dict[str, Any] = {
        "destination_dir": None,
        "last_backup_uri": None,
        "backup_format": "json",
        "notifications_enabled": True,
        "auto_backup_interval_hours": 0,
    }

    def __init__(self, settings_path: str):
        self.settings_path = settings_path
        self._settings: dict[str, Any] = {}
        self._lock = threading.RLock()
        self.load()

    def load(self) -> None:
        with self._lock:
            try:
                if os.path.exists(self.settings_path):
                    with open(self.settings_path, encoding="utf-8") as f:
                        data = json.load(f)
                    if isinstance(data, dict):
                        self._settings = data
                        _logger.debug("settings loaded: %s", self.settings_path)
                        return
                    _logger.warning("settings file is not a JSON object: %s", self.settings_path)
            except (OSError, ValueError) as e:
                _logger.warning("settings load failed: %s", e)
            self._settings = {}

    def save(self) -> None:
        with self._lock:
            payload = dict(self._settings)
            folder = os.path.dirname(self.settings_path) or "."
            try:
                os.makedirs(folder, exist_ok=True)
                fd, tmp = tempfile.mkstemp(prefix=".settings-", suffix=".part", dir=folder)
                try:
                    with os.fdopen(fd, "w", encoding="utf-8") as f:
                        json.dump(payload, f, ensure_ascii=False, indent=2)
                    os.replace(tmp, self.settings_path)
                except BaseException:
                    if os.path.exists(tmp):
                        os.unlink(tmp)
                    raise
                _logger.debug("settings saved: %s", self.settings_path)
            except OSError as e:
                _logger.error("settings save failed: %s", e)

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            if key in self._settings:
                return self._settings[key]
        if default is not None:
            return default
        return self.DEFAULTS.get(key)

    def has(self, key: str) -> bool:
        with self._lock:
            return key in self._settings

    def set(self, key: str, value: Any) -> None:
        if key == "destination_dir" and value is not None:
            value = abs_path_str(value)
        with self._lock:
            if key == "destination_dir" and value != self._settings.get("destination_dir"):
                # The stored reference belongs to the previous folder
                self._settings["last_backup_uri"] = None
            self._settings[key] = value
            self.save()

    @property
    def data(self) -> dict[str, Any]:
        with self._lock:
            return dict(self._settings)

    @property
    def destination_dir(self) -> Path | None:
        """Configured backup destination, or None when unset or gone."""
        val = self.get("destination_dir")
        if not isinstance(val, str) or not val:
            return None
        p = abs_path(val)
        return p if p.is_dir() else None

    @property
    def last_backup_uri(self) -> str | None:
        val = self.get("last_backup_uri")
        return val if isinstance(val, str) and val else None

    @property
    def backup_format(self) -> str:
        fmt = str(self.get("backup_format", "json")).strip().lower()
        if fmt not in SUPPORTED_FORMATS:
            _logger.warning("unknown backup_format %r, using json", fmt)
            return "json"
        return fmt

    @property
    def notifications_enabled(self) -> bool:
        return bool(self.get("notifications_enabled"))

    @property
    def auto_backup_interval_hours(self) -> float:
        try:
            return max(0.0, float(self.get("auto_backup_interval_hours") or 0))
        except (TypeError, ValueError):
            return 0.0
