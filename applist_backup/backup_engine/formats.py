"""Artifact file naming and (de)serialization.

Artifacts are named ``app-list-backup-<YYYYmmdd-HHMMSS-ffffff>.<ext>`` so that
lexical order equals creation order. In-progress writes use a hidden ``.part``
name which never matches :data:`ARTIFACT_NAME_RE`.
"""

from __future__ import annotations

import csv
import io
import json
import re
from collections.abc import Iterable
from datetime import datetime
from typing import IO

from .errors import ArtifactReadError
from .models import BackupContents, InstalledApp

ARTIFACT_PREFIX = "app-list-backup-"
FORMAT_SUFFIXES = {"json": ".json", "csv": ".csv"}
ARTIFACT_NAME_RE = re.compile(r"^app-list-backup-(\d{8}-\d{6}-\d{6})\.(json|csv)$")
_STAMP_FMT = "%Y%m%d-%H%M%S-%f"
_JSON_FORMAT_VERSION = 1
_CSV_FIELDS = ("package_name", "name", "version", "summary")
_CSV_CREATED_MARK = "#created_at"


def artifact_filename(created: datetime, fmt: str) -> str:
    try:
        suffix = FORMAT_SUFFIXES[fmt]
    except KeyError:
        raise ValueError(f"unsupported backup format: {fmt!r}") from None
    return f"{ARTIFACT_PREFIX}{created.strftime(_STAMP_FMT)}{suffix}"


def is_artifact_name(name: str) -> bool:
    return ARTIFACT_NAME_RE.match(name) is not None


def format_for_name(name: str) -> str | None:
    m = ARTIFACT_NAME_RE.match(name)
    return m.group(2) if m else None


def write_artifact(stream: IO[str], apps: Iterable[InstalledApp], fmt: str, created: datetime) -> int:
    """Serialize ``apps`` into ``stream``. Returns the number of rows written."""
    created_at = created.isoformat(timespec="seconds")
    if fmt == "json":
        rows = [
            {"package_name": a.package_name, "name": a.name, "version": a.version, "summary": a.summary}
            for a in apps
        ]
        json.dump(
            {
                "format_version": _JSON_FORMAT_VERSION,
                "created_at": created_at,
                "app_count": len(rows),
                "apps": rows,
            },
            stream,
            ensure_ascii=False,
            indent=2,
        )
        return len(rows)

    if fmt == "csv":
        writer = csv.writer(stream)
        writer.writerow([_CSV_CREATED_MARK, created_at])
        writer.writerow(_CSV_FIELDS)
        count = 0
        for a in apps:
            writer.writerow([a.package_name, a.name, a.version, a.summary])
            count += 1
        return count

    raise ValueError(f"unsupported backup format: {fmt!r}")


def _parse_json(text: str) -> BackupContents:
    try:
        doc = json.loads(text)
    except ValueError as e:
        raise ArtifactReadError(f"invalid JSON artifact: {e}") from e
    if not isinstance(doc, dict) or not isinstance(doc.get("apps"), list):
        raise ArtifactReadError("JSON artifact has no 'apps' list")
    apps = []
    for row in doc["apps"]:
        if not isinstance(row, dict) or not row.get("package_name"):
            raise ArtifactReadError(f"malformed app row: {row!r}")
        apps.append(
            InstalledApp(
                package_name=str(row["package_name"]),
                name=str(row.get("name") or row["package_name"]),
                version=str(row.get("version") or ""),
                summary=str(row.get("summary") or ""),
            )
        )
    return BackupContents(created_at=str(doc.get("created_at") or ""), format="json", apps=tuple(apps))


def _parse_csv(text: str) -> BackupContents:
    reader = csv.reader(io.StringIO(text))
    created_at = ""
    header: list[str] | None = None
    apps = []
    for row in reader:
        if not row:
            continue
        if header is None:
            if row[0] == _CSV_CREATED_MARK:
                created_at = row[1] if len(row) > 1 else ""
                continue
            header = row
            if tuple(header) != _CSV_FIELDS:
                raise ArtifactReadError(f"unexpected CSV header: {header!r}")
            continue
        if len(row) != len(_CSV_FIELDS):
            raise ArtifactReadError(f"malformed CSV row: {row!r}")
        apps.append(InstalledApp(*row))
    if header is None:
        raise ArtifactReadError("CSV artifact has no header")
    return BackupContents(created_at=created_at, format="csv", apps=tuple(apps))


def parse_artifact(text: str, fmt: str) -> BackupContents:
    if fmt == "json":
        return _parse_json(text)
    if fmt == "csv":
        return _parse_csv(text)
    raise ArtifactReadError(f"unsupported backup format: {fmt!r}")
