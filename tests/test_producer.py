from __future__ import annotations

import json
from datetime import datetime

import pytest

from applist_backup.backup_engine.errors import ArtifactProduceError
from applist_backup.backup_engine.locator import ArtifactLocator
from applist_backup.backup_engine.metrics import metrics
from applist_backup.backup_engine.models import InstalledApp
from applist_backup.backup_engine import producer as producer_module
from applist_backup.backup_engine.producer import BackupProducer

APPS = [
    InstalledApp("org-androidlabs-applistbackup", "App List Backup", "1.4.0", "Backs up your app list"),
    InstalledApp("org-mozilla-firefox", "Firefox", "131.0"),
]


class ListSource:
    def __init__(self, apps):
        self._apps = apps

    def list_apps(self):
        return list(self._apps)


class FailingSource:
    def list_apps(self):
        raise OSError("package manager unavailable")


def _fixed_clock(second: int):
    return lambda: datetime(2026, 10, 19, 9, 30, second, 123456)


def test_produce_writes_artifact_and_persists_reference(settings, destination):
    metrics.reset()
    producer = BackupProducer(settings, ListSource(APPS), clock=_fixed_clock(0))

    ref = producer.produce(destination)

    assert ref.path == destination / "app-list-backup-20261019-093000-123456.json"
    doc = json.loads(ref.path.read_text(encoding="utf-8"))
    assert doc["app_count"] == 2
    assert doc["created_at"] == "2026-10-19T09:30:00"
    assert [a["package_name"] for a in doc["apps"]] == [a.package_name for a in APPS]
    assert settings.last_backup_uri == ref.uri
    assert ArtifactLocator(settings).locate_latest() == ref
    assert list(destination.glob("*.part")) == []
    assert metrics.count("producer.produced") == 1


def test_produce_uses_configured_format(settings, destination):
    settings.set("backup_format", "csv")
    ref = BackupProducer(settings, ListSource(APPS), clock=_fixed_clock(1)).produce(destination)

    assert ref.path.suffix == ".csv"
    assert ref.path.read_text(encoding="utf-8").splitlines()[1] == "package_name,name,version,summary"


def test_enumeration_failure_leaves_latest_unchanged(settings, destination):
    first = BackupProducer(settings, ListSource(APPS), clock=_fixed_clock(0)).produce(destination)
    locator = ArtifactLocator(settings)
    before = sorted(p.name for p in destination.iterdir())

    with pytest.raises(ArtifactProduceError) as exc:
        BackupProducer(settings, FailingSource(), clock=_fixed_clock(5)).produce(destination)

    assert "package manager unavailable" in str(exc.value)
    assert locator.locate_latest() == first
    assert sorted(p.name for p in destination.iterdir()) == before


def test_failure_mid_write_leaves_no_visible_artifact(settings, destination, monkeypatch):
    first = BackupProducer(settings, ListSource(APPS), clock=_fixed_clock(0)).produce(destination)

    def _disk_full(stream, apps, fmt, created):
        stream.write('{"apps": [')
        raise OSError(28, "No space left on device")

    monkeypatch.setattr(producer_module, "write_artifact", _disk_full)

    with pytest.raises(ArtifactProduceError) as exc:
        BackupProducer(settings, ListSource(APPS), clock=_fixed_clock(9)).produce(destination)

    assert "No space left" in str(exc.value)
    assert [p.name for p in destination.iterdir()] == [first.path.name]
    assert settings.last_backup_uri == first.uri
    # Ignore stored ref: the newest visible artifact must still be the first one.
    settings.set("last_backup_uri", None)
    assert ArtifactLocator(settings).locate_latest() == first


def test_destination_must_be_a_directory(settings, tmp_path):
    missing = tmp_path / "nope"

    with pytest.raises(ArtifactProduceError) as exc:
        BackupProducer(settings, ListSource(APPS)).produce(missing)
    assert exc.value.context["destination"] == str(missing)
    assert settings.last_backup_uri is None


def test_unsupported_format_is_a_produce_error(settings, destination):
    with pytest.raises(ArtifactProduceError) as exc:
        BackupProducer(settings, ListSource(APPS), fmt="xml").produce(destination)

    assert exc.value.context["format"] == "xml"
    assert list(destination.iterdir()) == []
    assert settings.last_backup_uri is None


def test_default_source_lists_installed_distributions(tmp_path):
    # pytest itself is installed in any environment running this test
    ref = BackupProducer(fmt="json").produce(tmp_path)
    doc = json.loads(ref.path.read_text(encoding="utf-8"))
    names = {a["package_name"] for a in doc["apps"]}
    assert "pytest" in names
