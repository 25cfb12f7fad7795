"""Path and URI normalization utilities.

Artifact references are stored and compared as ``file://`` URIs, while the
filesystem is always touched through absolute ``Path`` objects.

Keep this module free of Qt dependencies.
"""

from __future__ import annotations

from pathlib import Path
from urllib.parse import unquote, urlparse

_DRIVE_PREFIX_LEN = 2


def _normalize_drive_letter(path_str: str) -> str:
    # Normalize drive letter casing on Windows ("c:\\" -> "C:\\").
    if len(path_str) >= _DRIVE_PREFIX_LEN and path_str[1] == ":":
        return path_str[0].upper() + path_str[1:]
    return path_str


def abs_path(path: str | Path) -> Path:
    """Return an absolute path without requiring that it exists."""
    p = Path(path).expanduser()
    try:
        return p.resolve(strict=False)
    except OSError:
        return p.absolute()


def abs_path_str(path: str | Path) -> str:
    """Absolute, OS-native path string (Windows uses backslashes)."""
    return _normalize_drive_letter(str(abs_path(path)))


def to_uri(path: str | Path) -> str:
    """Stable ``file://`` URI for a filesystem path."""
    return Path(abs_path_str(path)).as_uri()


def from_uri(uri: str) -> Path:
    """Inverse of :func:`to_uri`.

    Plain paths are accepted as well so hand-edited settings keep working.
    Raises ValueError for URI schemes other than ``file``.
    """
    parsed = urlparse(str(uri))
    # A Windows drive letter parses as a one-letter scheme ("C:\\backups").
    if parsed.scheme == "" or len(parsed.scheme) == 1:
        return abs_path(uri)
    if parsed.scheme != "file":
        raise ValueError(f"unsupported artifact URI scheme: {parsed.scheme!r}")

    raw = unquote(parsed.path)
    # file:///C:/x -> "/C:/x"
    if len(raw) > _DRIVE_PREFIX_LEN and raw[0] == "/" and raw[2] == ":":
        raw = raw[1:]
    if parsed.netloc and parsed.netloc != "localhost":
        raw = f"//{parsed.netloc}{raw}"
    return abs_path(raw)
