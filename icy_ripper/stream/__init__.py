"""
Stream Input Layer.

This package opens the byte sources a rip session reads from.
"""

from .source import (
    FileStreamSource,
    HttpStreamSource,
    StreamSource,
    close_connection_pool,
    open_source,
)

__all__ = [
    "FileStreamSource",
    "HttpStreamSource",
    "StreamSource",
    "close_connection_pool",
    "open_source",
]
