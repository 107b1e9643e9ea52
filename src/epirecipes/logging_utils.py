"""Logging helpers for recipe scripts.

Every recipe script logs to the console and to a run.log file inside its run
folder. Library modules only create module loggers; handlers are installed
here, once, by the script entry point.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Mapping, Optional, Union

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that flood DEBUG output with font and backend chatter.
NOISY_LOGGERS = ("matplotlib", "PIL", "numba")


def _resolve_level(level: Union[str, int]) -> int:
    """Map a string level to a logging level constant."""
    if isinstance(level, int):
        return level
    return getattr(logging, str(level).upper(), logging.INFO)


def setup_logging(
    level: Union[str, int] = "INFO",
    log_file: Optional[Union[str, Path]] = None,
    console: bool = True,
    quiet: Iterable[str] = NOISY_LOGGERS,
) -> logging.Logger:
    """Configure root logging with optional file and console handlers."""
    logger = logging.getLogger()
    resolved_level = _resolve_level(level)

    # Repeated runs in one interpreter would otherwise duplicate every line.
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    logger.setLevel(resolved_level)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    if console:
        handler = logging.StreamHandler()
        handler.setLevel(resolved_level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(path, encoding="utf-8")
        handler.setLevel(resolved_level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    for name in quiet:
        logging.getLogger(name).setLevel(max(resolved_level, logging.WARNING))

    return logger


def log_config(logger: logging.Logger, config: Mapping[str, object], title: str = "Config") -> None:
    """Log a flat config mapping as a single sorted key=value line."""
    parts = [f"{key}={config[key]}" for key in sorted(config)]
    logger.info("%s: %s", title, " ".join(parts))
