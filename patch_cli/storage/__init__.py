"""
Storage Layer.

This package handles the persistence of the application's configuration file.
"""

from .config_manager import ConfigManager

__all__ = ["ConfigManager"]
