from __future__ import annotations

import json
from pathlib import Path

from applist_backup.settings_manager import SettingsManager, default_settings_path


def test_destination_is_normalized_and_must_exist(tmp_path: Path) -> None:
    sm = SettingsManager(str(tmp_path / "settings.json"))
    assert sm.destination_dir is None

    folder = tmp_path / "backups"
    folder.mkdir()
    sm.set("destination_dir", str(folder / ".." / "backups"))

    assert sm.get("destination_dir") == str(folder.resolve())
    assert sm.destination_dir == folder.resolve()

    folder.rmdir()
    # A destination that disappeared is treated as not configured.
    assert sm.destination_dir is None


def test_values_survive_reload(tmp_path: Path) -> None:
    settings_path = tmp_path / "nested" / "settings.json"
    sm = SettingsManager(str(settings_path))
    sm.set("last_backup_uri", "file:///backups/app-list-backup-20260101-000000-000000.json")
    sm.set("notifications_enabled", False)

    again = SettingsManager(str(settings_path))

    assert again.last_backup_uri == "file:///backups/app-list-backup-20260101-000000-000000.json"
    assert again.notifications_enabled is False
    assert list(settings_path.parent.glob("*.part")) == []


def test_defaults_and_corrupt_file(tmp_path: Path) -> None:
    settings_path = tmp_path / "settings.json"
    settings_path.write_text("{not json", encoding="utf-8")

    sm = SettingsManager(str(settings_path))

    assert sm.data == {}
    assert sm.backup_format == "json"
    assert sm.notifications_enabled is True
    assert sm.auto_backup_interval_hours == 0.0
    assert sm.last_backup_uri is None


def test_invalid_values_fall_back(tmp_path: Path) -> None:
    settings_path = tmp_path / "settings.json"
    settings_path.write_text(
        json.dumps({"backup_format": "html", "auto_backup_interval_hours": "soon"}),
        encoding="utf-8",
    )

    sm = SettingsManager(str(settings_path))

    assert sm.backup_format == "json"
    assert sm.auto_backup_interval_hours == 0.0


def test_settings_path_env_override(tmp_path: Path, monkeypatch) -> None:
    target = tmp_path / "custom" / "cfg.json"
    monkeypatch.setenv("APPLIST_BACKUP_SETTINGS", str(target))

    assert default_settings_path() == str(target.resolve())


def test_changing_destination_drops_stored_reference(tmp_path: Path) -> None:
    sm = SettingsManager(str(tmp_path / "settings.json"))
    old = tmp_path / "old"
    new = tmp_path / "new"
    old.mkdir()
    new.mkdir()
    uri = (old / "app-list-backup-20260101-000000-000000.json").as_uri()

    sm.set("destination_dir", str(old))
    sm.set("last_backup_uri", uri)
    sm.set("destination_dir", str(old))
    assert sm.last_backup_uri == uri

    sm.set("destination_dir", str(new))
    assert sm.last_backup_uri is None
    assert SettingsManager(str(tmp_path / "settings.json")).last_backup_uri is None
