import logging
import os
import sys

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}


class _CategoryFilter(logging.Filter):
    """Only pass records whose logger suffix is in the allowed set."""

    def __init__(self, allowed: set[str]) -> None:
        super().__init__()
        self._allowed = allowed

    def filter(self, record: logging.LogRecord) -> bool:
        # record.name like: applist_backup.orchestrator, applist_backup.locator
        parts = (record.name or "").split(".")
        suffix = parts[-1] if parts else record.name
        return suffix in self._allowed


def setup_logger(level: int = logging.INFO, name: str = "applist_backup") -> logging.Logger:
    """Create or update the project logger.

    - Respects env overrides APPLIST_BACKUP_LOG_LEVEL/APPLIST_BACKUP_LOG_CATS on
      every call (so late CLI parsing can still take effect).
    - Ensures there is exactly one stderr StreamHandler on the base logger and
      updates its formatter/filters instead of bailing out early.
    """
    logger = logging.getLogger(name)

    env_level = (os.getenv("APPLIST_BACKUP_LOG_LEVEL") or "").strip().lower()
    if env_level:
        level = _LEVELS.get(env_level, level)
    logger.setLevel(level)

    stream_handler: logging.StreamHandler | None = None
    for h in list(logger.handlers):
        if getattr(h, "_applist_stderr", False) and getattr(h, "stream", None) is sys.stderr:
            stream_handler = h
            break

    if stream_handler is None:
        # Drop handlers bound to a stderr that has since been replaced (pytest capture).
        for h in list(logger.handlers):
            if getattr(h, "_applist_stderr", False):
                logger.removeHandler(h)
        stream_handler = logging.StreamHandler(stream=sys.stderr)
        stream_handler._applist_stderr = True  # type: ignore[attr-defined]
        logger.addHandler(stream_handler)

    stream_handler.setFormatter(
        logging.Formatter(
            fmt="[%(asctime)s] %(levelname)s: %(message)s",
            datefmt="%H:%M:%S",
        )
    )

    stream_handler.filters.clear()
    cats = (os.getenv("APPLIST_BACKUP_LOG_CATS") or "").strip()
    if cats:
        allowed = {c.strip() for c in cats.split(",") if c.strip()}
        stream_handler.addFilter(_CategoryFilter(allowed))

    # Do not propagate beyond the project logger
    logger.propagate = False
    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    base = setup_logger()
    return base if not name else base.getChild(name)
