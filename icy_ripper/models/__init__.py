"""
Data Models Layer.

This package contains the models that define the core data structures
used throughout the application, such as configuration and statistics.
"""

from .config import RipConfig
from .stats import RipStats

__all__ = ["RipConfig", "RipStats"]
