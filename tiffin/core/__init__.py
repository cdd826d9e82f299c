"""
Core module initialization.
Exports configuration, logging utilities and the error taxonomy.
"""

from tiffin.core.config import get_settings, setup_logging, Settings, EnvironmentMode, StoreBackend
from tiffin.core.errors import TiffinError

__all__ = [
    "get_settings",
    "setup_logging",
    "Settings",
    "EnvironmentMode",
    "StoreBackend",
    "TiffinError",
]
