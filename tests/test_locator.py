from __future__ import annotations

from pathlib import Path

import pytest

from applist_backup.backup_engine.errors import ArtifactLocateError
from applist_backup.backup_engine.locator import ArtifactLocator
from applist_backup.backup_engine.models import BackupArtifactRef


def _artifact(folder: Path, stamp: str, ext: str = "json") -> Path:
    p = folder / f"app-list-backup-{stamp}.{ext}"
    p.write_text("{}", encoding="utf-8")
    return p


def test_no_destination_means_no_artifact(settings):
    assert ArtifactLocator(settings).locate_latest() is None


def test_destination_without_artifacts(settings, destination):
    assert ArtifactLocator(settings).locate_latest() is None


def test_stored_reference_wins(settings, destination):
    older = _artifact(destination, "20260101-120000-000000")
    _artifact(destination, "20260301-120000-000000")
    settings.set("last_backup_uri", BackupArtifactRef.from_path(older).uri)

    ref = ArtifactLocator(settings).locate_latest()

    assert ref == BackupArtifactRef.from_path(older)


def test_falls_back_to_newest_complete_artifact(settings, destination):
    _artifact(destination, "20260101-120000-000000")
    newest = _artifact(destination, "20260301-120000-000000", "csv")
    (destination / ".app-list-backup-abc123.part").write_text("partial", encoding="utf-8")
    (destination / "notes.txt").write_text("x", encoding="utf-8")
    settings.set("last_backup_uri", (destination / "app-list-backup-gone.json").as_uri())

    ref = ArtifactLocator(settings).locate_latest()

    assert ref is not None
    assert ref.path == newest
    assert ref.display_name == newest.name


def test_partial_writes_are_never_returned(settings, destination):
    (destination / ".app-list-backup-xyz.part").write_text("{", encoding="utf-8")

    assert ArtifactLocator(settings).locate_latest() is None


def test_unusable_stored_uri_is_ignored(settings, destination):
    settings.set("last_backup_uri", "content://com.android.externalstorage/tree/backup.json")

    assert ArtifactLocator(settings).locate_latest() is None


def test_unreadable_destination_raises_locate_error(settings, destination, monkeypatch):
    def _denied(self):
        raise PermissionError(13, "Permission denied", str(self))

    monkeypatch.setattr(Path, "iterdir", _denied)

    with pytest.raises(ArtifactLocateError) as exc:
        ArtifactLocator(settings).locate_latest()
    assert exc.value.context["destination"] == str(destination.resolve())


def test_stored_reference_outside_destination_is_ignored(settings, destination, tmp_path):
    elsewhere = tmp_path / "elsewhere"
    elsewhere.mkdir()
    stale = _artifact(elsewhere, "20260501-120000-000000")
    settings.set("last_backup_uri", BackupArtifactRef.from_path(stale).uri)

    assert ArtifactLocator(settings).locate_latest() is None

    current = _artifact(destination, "20260101-120000-000000")
    assert ArtifactLocator(settings).locate_latest() == BackupArtifactRef.from_path(current)


def test_destination_stat_failure_is_a_locate_error(settings, destination, monkeypatch):
    def _denied(self):
        raise PermissionError(13, "Permission denied", str(destination))

    monkeypatch.setattr(type(settings), "destination_dir", property(_denied))

    with pytest.raises(ArtifactLocateError) as exc:
        ArtifactLocator(settings).locate_latest()
    assert exc.value.context["destination"] == str(destination.resolve())
