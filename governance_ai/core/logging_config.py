"""
Logging setup for the governance engine.

``setup_logging`` reads a ``LoggingConfig`` (``settings.logging``) and puts a
console handler, plus a file handler when a log directory is configured, on the
root logger. It also pins the levels of the engine's loggers and of chatty
third-party libraries.

Calling it again replaces the handlers installed by the previous call. Handlers
added by anyone else (pytest, an embedding application) are left untouched.
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional

from .config import LoggingConfig

logger = logging.getLogger(__name__)

LOG_FILE_NAME = "governance_ai.log"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

FORMATS: Dict[str, str] = {
    "simple": "%(levelname)s - %(name)s - %(message)s",
    "detailed": "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(funcName)s() - %(message)s",
    "json": (
        '{"timestamp": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", '
        '"module": "%(filename)s", "function": "%(funcName)s", "line": %(lineno)d, '
        '"message": "%(message)s"}'
    ),
}

# The file handler records everything these loggers emit; the console
# handler applies the configured level on top.
LOGGER_LEVELS: Dict[str, str] = {
    "governance_ai.agent_core.runtime": "DEBUG",
    "governance_ai.agent_core.policy": "DEBUG",
    "governance_ai.agent_core.conversation": "DEBUG",
    "governance_ai.agent_core.tools": "DEBUG",
    "governance_ai.agent_core.repos": "INFO",
    "governance_ai.agent_core.trust": "INFO",
    "governance_ai.agent_core.router": "INFO",
    "governance_ai.mcp_client": "INFO",
    "governance_ai.clients": "INFO",
    "sqlalchemy": "WARNING",
    "httpx": "WARNING",
    "httpcore": "WARNING",
    "mcp": "WARNING",
    "asyncio": "WARNING",
}

_installed: List[logging.Handler] = []


def _drop_installed(root: logging.Logger) -> None:
    while _installed:
        handler = _installed.pop()
        root.removeHandler(handler)
        handler.close()


def setup_logging(config: Optional[LoggingConfig] = None) -> List[logging.Handler]:
    """
    Configure process logging from ``config``.

    Args:
        config: Logging settings; defaults apply when omitted.

    Returns:
        The handlers attached to the root logger by this call.
    """
    cfg = config or LoggingConfig()
    level = cfg.level.upper()
    formatter = logging.Formatter(FORMATS[cfg.format], datefmt=DATE_FORMAT)

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    _drop_installed(root)

    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(formatter)
    handlers: List[logging.Handler] = [console]

    if cfg.file_dir:
        log_dir = Path(cfg.file_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_dir / LOG_FILE_NAME, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    for handler in handlers:
        root.addHandler(handler)
    _installed.extend(handlers)

    for name, name_level in LOGGER_LEVELS.items():
        logging.getLogger(name).setLevel(name_level)

    logger.info(f"Logging configured: level={level}, format={cfg.format}, log_dir={cfg.file_dir or '-'}")
    return handlers
