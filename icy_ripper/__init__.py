"""
icy-ripper: records ICY/Shoutcast internet radio streams into one file per track.
"""

__version__ = "0.3.0"
