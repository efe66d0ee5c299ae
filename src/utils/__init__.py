"""
pagesnap utilities module.
"""

from src.utils.config import ensure_directories, get_project_root, get_settings
from src.utils.logging import LogContext, configure_logging, get_logger

__all__ = [
    # Config
    "get_settings",
    "get_project_root",
    "ensure_directories",
    # Logging
    "get_logger",
    "configure_logging",
    "LogContext",
]
