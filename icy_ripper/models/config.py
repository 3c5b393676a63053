"""
Pydantic model for application configuration.
Provides robust validation for all settings.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Maps the stream's Content-Type to the extension used for ripped tracks
CONTENT_TYPE_MAP = {
    "audio/mpeg": "mp3",
    "audio/mp3": "mp3",
    "audio/aac": "aac",
    "audio/aacp": "aac",
    "audio/x-aac": "aac",
    "audio/ogg": "ogg",
    "application/ogg": "ogg",
    "audio/flac": "flac",
}

DEFAULT_EXTENSION = "mp3"
DEFAULT_OUTPUT_TEMPLATE = "{tracknumber} - %{?artist,{artist} - |}{title}"
DEFAULT_USER_AGENT = "icy-ripper"
MAX_CHUNK_SIZE = 1048576  # 1 MB


def get_extension(content_type: str) -> str:
    """Gets the file extension for a stream Content-Type."""
    media_type = content_type.split(";")[0].strip().lower()
    return CONTENT_TYPE_MAP.get(media_type, DEFAULT_EXTENSION)


class RipConfig(BaseModel):
    """A validated configuration model for the application."""

    model_config = ConfigDict(validate_assignment=True, str_strip_whitespace=True)

    # Output Settings
    output_dir: str = "."
    output_template: str = DEFAULT_OUTPUT_TEMPLATE
    max_bytes: int = 0  # 0 means unlimited
    tag_tracks: bool = True

    # Network Settings
    chunk_size: int = 8192
    user_agent: str = DEFAULT_USER_AGENT
    connect_timeout: float = 15.0
    read_timeout: float = 60.0
    max_attempts: int = 3

    # Logging and History
    log_json: bool = False
    save_history: bool = True

    # Internal fields not loaded from INI file
    config_path: str = Field(".", repr=False)
    source: str = Field("", repr=False)

    @field_validator("max_bytes")
    @classmethod
    def validate_max_bytes(cls, v: int) -> int:
        """Ensures the output ceiling is not negative."""
        if v < 0:
            raise ValueError("max_bytes cannot be negative (use 0 for unlimited).")
        return v

    @field_validator("chunk_size")
    @classmethod
    def validate_chunk_size(cls, v: int) -> int:
        """Ensures a reasonable read size."""
        if v < 1 or v > MAX_CHUNK_SIZE:
            raise ValueError(f"chunk_size must be between 1 and {MAX_CHUNK_SIZE}.")
        return v

    @field_validator("max_attempts")
    @classmethod
    def validate_attempts(cls, v: int) -> int:
        if v < 1 or v > 10:
            raise ValueError("max_attempts must be between 1 and 10.")
        return v

    @field_validator("connect_timeout", "read_timeout")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Timeouts must be positive.")
        return v

    @field_validator("output_template")
    @classmethod
    def validate_template(cls, v: str) -> str:
        """Validates the track file name template."""
        if not v:
            raise ValueError("Output template cannot be empty.")
        if ".." in v or v.startswith(("/", "\\")):
            raise ValueError(
                "Output template cannot contain relative '..' or absolute paths."
            )
        if "{tracknumber}" not in v and "{title}" not in v:
            raise ValueError(
                "Output template must contain at least {tracknumber} or {title}."
            )
        return v

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that are expected in the INI file."""
        internal_fields = {"config_path", "source"}
        return {key for key in cls.model_fields if key not in internal_fields}
