"""
Logging setup for Employee Forge.

``setup_logging`` installs one console handler on the root logger (plus a
file handler when ``ENABLE_FILE_LOGGING`` is set) and applies the per-module
levels in ``MODULE_LOG_LEVELS``. Defaults come from ``Settings``:

- ``EMPLOYEE_FORGE_LOG_LEVEL``: console level
- ``LOG_FORMAT``: ``simple``, ``detailed`` or ``json``
- ``LOG_FILE_DIR`` / ``ENABLE_FILE_LOGGING``: optional file output

Modules log through ``logging.getLogger(__name__)``.
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional

from employee_forge.core.config import Settings

LOG_FILE_NAME = "employee_forge.log"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

FORMATS: Dict[str, str] = {
    "simple": "%(levelname)s %(name)s: %(message)s",
    "detailed": "%(asctime)s %(levelname)-8s %(name)s [%(filename)s:%(lineno)d %(funcName)s] %(message)s",
    "json": (
        '{"ts": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", '
        '"where": "%(filename)s:%(lineno)d", "message": "%(message)s"}'
    ),
}

MODULE_LOG_LEVELS: Dict[str, str] = {
    "employee_forge.builder": "DEBUG",
    "employee_forge.builder.repos": "INFO",
    "employee_forge.builder.catalog": "INFO",
    # third-party noise
    "sqlalchemy": "WARNING",
    "sqlalchemy.engine": "WARNING",
    "httpx": "WARNING",
    "httpcore": "WARNING",
    "asyncio": "WARNING",
}


def _handlers(level: str, formatter: logging.Formatter, file_dir: Optional[str]) -> List[logging.Handler]:
    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(formatter)
    handlers: List[logging.Handler] = [console]
    if file_dir:
        Path(file_dir).mkdir(parents=True, exist_ok=True)
        to_file = logging.FileHandler(Path(file_dir) / LOG_FILE_NAME)
        to_file.setLevel(logging.DEBUG)
        to_file.setFormatter(formatter)
        handlers.append(to_file)
    return handlers


def setup_logging(
    log_level: Optional[str] = None,
    log_format: Optional[str] = None,
    *,
    enable_file: Optional[bool] = None,
    settings: Optional[Settings] = None,
) -> None:
    """
    Configure the root logger.

    Args:
        log_level: Console level; defaults to ``EMPLOYEE_FORGE_LOG_LEVEL``.
        log_format: ``simple``, ``detailed`` or ``json``; defaults to ``LOG_FORMAT``.
        enable_file: Force file logging on or off; defaults to ``ENABLE_FILE_LOGGING``.
        settings: Settings to read defaults from; a fresh ``Settings()`` if omitted.
    """
    cfg = settings or Settings()
    level = (log_level or cfg.log_level).upper()
    fmt = log_format or cfg.log_format
    to_file = cfg.enable_file_logging if enable_file is None else enable_file
    formatter = logging.Formatter(FORMATS.get(fmt, FORMATS["detailed"]), datefmt=DATE_FORMAT)

    root = logging.getLogger()
    # handlers filter; the root passes everything through
    root.setLevel(logging.DEBUG)
    for existing in list(root.handlers):
        root.removeHandler(existing)
    for handler in _handlers(level, formatter, cfg.log_file_dir if to_file else None):
        root.addHandler(handler)

    for name, module_level in MODULE_LOG_LEVELS.items():
        logging.getLogger(name).setLevel(module_level)

    root.info("Logging configured (level=%s, format=%s, file=%s)", level, fmt, to_file)


def get_logger(name: str) -> logging.Logger:
    """Module logger; equivalent to ``logging.getLogger(name)``."""
    return logging.getLogger(name)
