"""
Storage Layer.

This package handles data persistence for the application's INI
configuration file.
"""

from .config_manager import ConfigManager

__all__ = ["ConfigManager"]
