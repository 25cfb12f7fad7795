"""Sources of installed-application rows.

The producer only needs an object with ``list_apps()``; how applications are
enumerated is up to the source. The default lists the Python distributions
installed in the running environment.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from importlib import metadata
from typing import Protocol

from applist_backup.logger import get_logger

from .models import InstalledApp

_logger = get_logger("app_source")
_NORMALIZE_RE = re.compile(r"[-_.]+")


class InstalledAppsSource(Protocol):
    def list_apps(self) -> Iterable[InstalledApp]: ...


def normalize_package_name(name: str) -> str:
    return _NORMALIZE_RE.sub("-", name).lower().strip("-")


class DistributionAppSource:
    """Enumerate installed distributions via ``importlib.metadata``."""

    def __init__(self, path: list[str] | None = None) -> None:
        self._path = path

    def _distributions(self):
        if self._path is None:
            return metadata.distributions()
        return metadata.distributions(path=self._path)

    def list_apps(self) -> list[InstalledApp]:
        seen: dict[str, InstalledApp] = {}
        for dist in self._distributions():
            meta = dist.metadata
            name = (meta.get("Name") or "").strip() if meta is not None else ""
            if not name:
                # Broken dist-info without a Name field
                continue
            key = normalize_package_name(name)
            if key in seen:
                continue
            seen[key] = InstalledApp(
                package_name=key,
                name=name,
                version=str(dist.version or ""),
                summary=(meta.get("Summary") or "").strip(),
            )
        apps = sorted(seen.values(), key=lambda a: a.package_name)
        _logger.debug("enumerated %d installed apps", len(apps))
        return apps
