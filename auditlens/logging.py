"""Logging setup shared by the auditlens CLI, service and pipeline."""

from __future__ import annotations

import logging
from pathlib import Path

_ROOT = "auditlens"
_CONSOLE_FORMAT = "[auditlens] %(levelname)s %(component)s: %(message)s"
_FILE_FORMAT = "%(asctime)s %(levelname)s %(component)s: %(message)s"

# Driver and server loggers that drown out pipeline output at DEBUG.
_NOISY_LOGGERS = ("pymongo", "urllib3", "uvicorn.access")


class _ComponentFilter(logging.Filter):
    """Expose the logger name without the ``auditlens.`` prefix as ``component``."""

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if name == _ROOT:
            record.component = "main"
        elif name.startswith(f"{_ROOT}."):
            record.component = name[len(_ROOT) + 1 :]
        else:
            record.component = name
        return True


def get_logger(name: str | None = None) -> logging.Logger:
    """Return ``auditlens.<name>``, or the package root logger."""
    return logging.getLogger(f"{_ROOT}.{name}" if name else _ROOT)


def configure_logging(
    *, verbose: bool = False, log_file: Path | None = None
) -> logging.Logger:
    level = logging.DEBUG if verbose else logging.INFO
    logger = logging.getLogger(_ROOT)
    logger.setLevel(level)
    logger.propagate = False

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    component = _ComponentFilter()
    console = logging.StreamHandler()
    console.setLevel(level)
    console.addFilter(component)
    console.setFormatter(logging.Formatter(_CONSOLE_FORMAT))
    logger.addHandler(console)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        sink = logging.FileHandler(log_file, encoding="utf-8")
        sink.setLevel(level)
        sink.addFilter(component)
        sink.setFormatter(logging.Formatter(_FILE_FORMAT))
        logger.addHandler(sink)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return logger


__all__ = ["configure_logging", "get_logger"]
