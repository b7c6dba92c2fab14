"""Project logger with environment level and category overrides."""

import logging
import os
import sys

LEVEL_ENV = "RUNTIME_IMAGE_LOADER_LOG_LEVEL"
CATS_ENV = "RUNTIME_IMAGE_LOADER_LOG_CATS"

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}


class _CategoryFilter(logging.Filter):
    """Pass records whose last logger name component is in `allowed`."""

    def __init__(self, allowed: set[str]):
        super().__init__()
        self.allowed = allowed

    def filter(self, record: logging.LogRecord) -> bool:
        return (record.name or "").rsplit(".", 1)[-1] in self.allowed


def _stderr_handler(logger: logging.Logger) -> logging.StreamHandler:
    for handler in logger.handlers:
        if isinstance(handler, logging.StreamHandler) and getattr(handler, "stream", None) is sys.stderr:
            return handler
    handler = logging.StreamHandler(stream=sys.stderr)
    logger.addHandler(handler)
    return handler


def setup_logger(level: int = logging.INFO, name: str = "runtime_image_loader") -> logging.Logger:
    """Create or refresh the project logger.

    Environment overrides are re-read on every call. The logger keeps a single
    stderr handler whose formatter and category filter are replaced in place.
    """
    logger = logging.getLogger(name)

    env_level = (os.getenv(LEVEL_ENV) or "").strip().lower()
    logger.setLevel(_LEVELS.get(env_level, level))

    handler = _stderr_handler(logger)
    handler.setFormatter(logging.Formatter(fmt="[%(asctime)s] %(levelname)s: %(message)s", datefmt="%H:%M:%S"))

    handler.filters.clear()
    cats = {c.strip() for c in (os.getenv(CATS_ENV) or "").split(",") if c.strip()}
    if cats:
        handler.addFilter(_CategoryFilter(cats))

    logger.propagate = False
    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    base = setup_logger()
    return base if not name else base.getChild(name)
