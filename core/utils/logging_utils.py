"""
RoleGate - Component Logging

Every logger lives under the `rolegate.` namespace and writes to the console
plus the rotating file of its component:

- authorization -> authorization.log  (engine, route matcher)
- sync          -> sync.log           (permission synchronizer)
- store         -> store.log          (SQLite store, seeding)

Loggers of the same component share one file handler, so rotation happens
once per file.

Environment:
- ROLEGATE_LOG_DIR               directory for component files (default: logs)
- ROLEGATE_LOG_LEVEL             level name applied when no level is passed
- ROLEGATE_<COMPONENT>_LOG_FILE  full path override for one component
"""

import logging
import os
import threading
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Dict, Optional

NAMESPACE = "rolegate"

COMPONENTS = {
    "authorization": "authorization.log",
    "sync": "sync.log",
    "store": "store.log",
}

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s"

MAX_BYTES = 5 * 1024 * 1024
BACKUP_COUNT = 5

_file_handlers: Dict[Path, logging.Handler] = {}
_stream_handler: Optional[logging.Handler] = None
_lock = threading.Lock()


# ============================================================
# PATHS AND LEVELS
# ============================================================

def component_log_path(component: Optional[str]) -> Path:
    """
    File a component writes to. An unknown or missing component falls back
    to `rolegate.log` in the log directory.
    """

    if component:
        override = os.getenv(f"ROLEGATE_{component.upper()}_LOG_FILE")
        if override:
            return Path(override)

    log_dir = Path(os.getenv("ROLEGATE_LOG_DIR", "logs"))
    return log_dir / COMPONENTS.get(component, f"{NAMESPACE}.log")


def _default_level() -> int:
    name = os.getenv("ROLEGATE_LOG_LEVEL", "INFO").upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


# ============================================================
# HANDLERS
# ============================================================

def _formatter() -> logging.Formatter:
    return logging.Formatter(LOG_FORMAT)


def _shared_stream_handler() -> logging.Handler:
    global _stream_handler
    if _stream_handler is None:
        _stream_handler = logging.StreamHandler()
        _stream_handler.setFormatter(_formatter())
    return _stream_handler


def _shared_file_handler(path: Path) -> Optional[logging.Handler]:
    resolved = path.resolve()
    handler = _file_handlers.get(resolved)
    if handler is not None:
        return handler

    try:
        resolved.parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(
            resolved,
            maxBytes=MAX_BYTES,
            backupCount=BACKUP_COUNT,
            encoding="utf-8"
        )
    except OSError:
        logging.getLogger(NAMESPACE).exception(
            "Failed to initialize file logging at %s", resolved
        )
        return None

    handler.setFormatter(_formatter())
    _file_handlers[resolved] = handler
    return handler


# ============================================================
# PUBLIC API
# ============================================================

def get_component_logger(
    name: str,
    component: Optional[str] = None,
    level: Optional[int] = None,
    log_file: Optional[str] = None
) -> logging.Logger:
    """
    Logger `rolegate.<name>` attached to the console and to its component
    file. `log_file` replaces the component file. Calling again with the
    same name returns the configured logger and only updates the level.
    """

    logger = logging.getLogger(f"{NAMESPACE}.{name}")
    logger.setLevel(level if level is not None else _default_level())

    with _lock:
        if logger.handlers:
            return logger

        logger.propagate = False
        logger.addHandler(_shared_stream_handler())

        path = Path(log_file) if log_file else component_log_path(component)
        file_handler = _shared_file_handler(path)
        if file_handler is not None:
            logger.addHandler(file_handler)

    return logger

