"""Cross-cutting infrastructure: settings and logging."""

from .config import LoggingConfig, Settings, settings
from .logging_config import setup_logging

__all__ = ["LoggingConfig", "Settings", "settings", "setup_logging"]
