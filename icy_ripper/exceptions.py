"""
Defines custom exceptions for the application to allow for more specific error handling.
"""


class IcyRipperError(Exception):
    """Base exception for all application-specific errors."""


class ConfigurationError(IcyRipperError):
    """Raised for issues related to configuration loading or validation."""


class StateMachineError(ConfigurationError):
    """Raised when the demux controller is used without a usable state."""


class ProtocolError(IcyRipperError):
    """Raised when the stream does not follow the ICY metadata convention."""


class MissingMetaIntError(ProtocolError):
    """Raised when the response headers carry no usable 'Icy-Metaint' field."""


class MetadataFormatError(ProtocolError):
    """Raised when a metadata block is not of the form StreamTitle='...';"""


class StreamConnectionError(IcyRipperError):
    """Raised when the stream source cannot be opened."""


class TrackWriterError(IcyRipperError):
    """Raised when audio cannot be written to the current track file."""


class CapacityExceededError(TrackWriterError):
    """
    Raised by the track writer once the configured output ceiling is reached.
    This is the normal way a size-limited session ends.
    """
