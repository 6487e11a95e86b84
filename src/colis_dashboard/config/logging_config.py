from __future__ import annotations

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union

ROOT_LOGGER_NAME = "colis_dashboard"

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

LevelLike = Optional[Union[int, str]]


def _coerce_level(level: LevelLike) -> int:
    """
    int passes through; names ('info', 'WARN') are resolved case-insensitively.
    None reads LOG_LEVEL. Anything unresolvable is INFO.
    """
    if level is None:
        level = os.getenv("LOG_LEVEL") or "INFO"
    if isinstance(level, int):
        return level
    name = str(level).strip().upper()
    if name == "WARN":
        name = "WARNING"
    value = logging.getLevelName(name)
    return value if isinstance(value, int) else logging.INFO


def default_log_path(for_path: Union[str, Path]) -> Path:
    """Log file living next to a workbook/export (/x/import.xlsx -> /x/import.log)."""
    return Path(for_path).with_suffix(".log")


def _console_handler(logger: logging.Logger) -> Optional[logging.StreamHandler]:
    for h in logger.handlers:
        if type(h) is logging.StreamHandler:
            return h
    return None


def _file_handler(logger: logging.Logger, path: Path) -> Optional[logging.Handler]:
    target = os.path.abspath(path)
    for h in logger.handlers:
        if isinstance(h, RotatingFileHandler) and h.baseFilename == target:
            return h
    return None


def get_logger(
    name: Optional[str] = ROOT_LOGGER_NAME,
    *,
    level: LevelLike = None,
    log_file: Optional[Union[str, Path]] = None,
    console: bool = True,
    propagate: bool = False,
    max_bytes: int = 5_000_000,
    backup_count: int = 5,
) -> logging.Logger:
    """
    Configure and return a logger; repeated calls reuse existing targets.

    Console output goes to stderr, the optional file rotates at `max_bytes`.
    Module loggers (`colis_dashboard.api.soap`, ...) reach these handlers
    through the package logger.
    """
    logger = logging.getLogger(name)
    lvl = _coerce_level(level)
    logger.setLevel(lvl)
    logger.propagate = propagate
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)

    wanted: list[logging.Handler] = []

    if console:
        sh = _console_handler(logger)
        if sh is None:
            sh = logging.StreamHandler(stream=sys.stderr)
            logger.addHandler(sh)
        elif sh.stream is not sys.stderr:
            sh.setStream(sys.stderr)
        wanted.append(sh)

    if log_file is not None:
        path = Path(log_file)
        fh = _file_handler(logger, path)
        if fh is None:
            path.parent.mkdir(parents=True, exist_ok=True)
            fh = RotatingFileHandler(
                filename=str(path),
                maxBytes=max_bytes,
                backupCount=backup_count,
                encoding="utf-8",
                delay=True,
            )
            logger.addHandler(fh)
        wanted.append(fh)

    for h in wanted:
        h.setFormatter(formatter)
        h.setLevel(lvl)

    # urllib3 retry chatter only matters when debugging the transport
    if lvl > logging.DEBUG:
        logging.getLogger("urllib3").setLevel(logging.WARNING)

    return logger
