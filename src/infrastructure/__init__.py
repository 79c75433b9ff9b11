"""
Infrastructure layer - Settings, structured logging and wiring.
"""

from src.infrastructure.config import Settings, get_settings
from src.infrastructure.logging import get_logger, setup_logging

__all__ = ["Settings", "get_settings", "get_logger", "setup_logging"]
