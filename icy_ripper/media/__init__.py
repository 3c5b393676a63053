"""
Media Processing Layer.

This package is responsible for media file operations: writing ripped
audio into per-track files and tagging the finished tracks.
"""

from .tagger import Tagger
from .track_writer import TrackWriter

__all__ = ["Tagger", "TrackWriter"]
