"""
persista Core Components

Configuration, logging, errors and the StoreContext.
"""

from .config.settings import settings
from .logging import get_logger, setup_app_logging

__all__ = ["get_logger", "settings", "setup_app_logging"]
