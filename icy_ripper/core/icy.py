"""
Parsing and encoding helpers for the ICY (Shoutcast/Icecast) wire format.
"""

import re
from dataclasses import dataclass, field

from icy_ripper.exceptions import MetadataFormatError, MissingMetaIntError

from .demux import HEADER_DELIMITER, METADATA_BLOCK_UNIT

MAX_METADATA_LENGTH = 255 * METADATA_BLOCK_UNIT

# ICY values are not escaped, so a value runs until the first "';".
_METADATA_FIELD = re.compile(r"\s*(?P<key>[A-Za-z][\w-]*)='(?P<value>.*?)';", re.DOTALL)


@dataclass
class IcyHeaders:
    """The response header block of an ICY stream."""

    status_line: str
    fields: dict[str, str]
    metaint: int

    def get(self, name: str, default: str = "") -> str:
        return self.fields.get(name.lower(), default)

    @property
    def name(self) -> str:
        return self.get("icy-name")

    @property
    def genre(self) -> str:
        return self.get("icy-genre")

    @property
    def url(self) -> str:
        return self.get("icy-url")

    @property
    def bitrate(self) -> int | None:
        value = self.get("icy-br").split(",")[0].strip()
        return int(value) if value.isdigit() else None

    @property
    def content_type(self) -> str:
        return self.get("content-type").split(";")[0].strip().lower()


def parse_icy_headers(text: str) -> IcyHeaders:
    """
    Parses a response header block (without the terminating blank line).

    Field names are matched case-insensitively; the first occurrence wins.

    Raises:
        MissingMetaIntError: If 'Icy-Metaint' is absent or not a non-negative
        integer, since the stream cannot be framed without it.
    """
    # Only CRLF ends a line; latin-1 values may contain \x85 and other breaks
    lines = text.split("\r\n")
    status_line = ""
    if lines and lines[0].upper().startswith(("HTTP/", "ICY ")):
        status_line = lines.pop(0).strip()

    fields: dict[str, str] = {}
    for line in lines:
        key, sep, value = line.partition(":")
        if not sep or not key.strip():
            continue
        fields.setdefault(key.strip().lower(), value.strip())

    raw_metaint = fields.get("icy-metaint")
    if raw_metaint is None:
        raise MissingMetaIntError(
            "Response headers do not contain an 'Icy-Metaint' field. "
            "The server may not support ICY metadata."
        )
    try:
        metaint = int(raw_metaint)
    except ValueError:
        raise MissingMetaIntError(
            f"Invalid 'Icy-Metaint' value: {raw_metaint!r}"
        ) from None
    if metaint < 0:
        raise MissingMetaIntError(f"Invalid 'Icy-Metaint' value: {metaint}")

    return IcyHeaders(status_line=status_line, fields=fields, metaint=metaint)


def build_header_block(status_line: str, headers: list[tuple[str, str]]) -> bytes:
    """Serializes a status line and header pairs, ending with the blank line."""
    lines = [status_line, *(f"{key}: {value}" for key, value in headers)]
    return "\r\n".join(lines).encode("latin-1", errors="replace") + HEADER_DELIMITER


@dataclass(frozen=True)
class TrackIdentity:
    """The (artist, title) pair a station announces for the current track."""

    artist: str
    title: str

    @classmethod
    def from_stream_title(cls, stream_title: str) -> "TrackIdentity":
        """Splits 'Artist - Title' on the first separator."""
        artist, sep, title = stream_title.partition(" - ")
        if not sep:
            return cls(artist="", title=stream_title.strip())
        return cls(artist=artist.strip(), title=title.strip())

    def __str__(self) -> str:
        return f"{self.artist} - {self.title}" if self.artist else self.title


@dataclass
class StreamMetadata:
    """One decoded metadata block."""

    stream_title: str
    stream_url: str = ""
    fields: dict[str, str] = field(default_factory=dict)

    @property
    def identity(self) -> TrackIdentity:
        return TrackIdentity.from_stream_title(self.stream_title)


def parse_stream_metadata(text: str) -> StreamMetadata:
    """
    Parses a block such as ``StreamTitle='Artist - Title';StreamUrl='...';``.

    Raises:
        MetadataFormatError: If the text is not a sequence of Key='value';
        fields starting with StreamTitle and StreamUrl, in that order.
    """
    fields: dict[str, str] = {}
    keys: list[str] = []
    pos = 0
    text = text.rstrip("\x00").rstrip()
    while pos < len(text):
        match = _METADATA_FIELD.match(text, pos)
        if not match:
            raise MetadataFormatError(f"Unparseable metadata at offset {pos}: {text!r}")
        keys.append(match.group("key"))
        fields.setdefault(match.group("key"), match.group("value"))
        pos = match.end()

    if keys[:2] != ["StreamTitle", "StreamUrl"]:
        raise MetadataFormatError(
            f"Metadata does not start with StreamTitle and StreamUrl: {text!r}"
        )

    return StreamMetadata(
        stream_title=fields["StreamTitle"],
        stream_url=fields["StreamUrl"],
        fields=fields,
    )


def build_metadata_block(text: str, encoding: str = "utf-8") -> bytes:
    """Encodes text as a length byte followed by the NUL-padded block."""
    data = text.encode(encoding)
    units = -(-len(data) // METADATA_BLOCK_UNIT)
    if units * METADATA_BLOCK_UNIT > MAX_METADATA_LENGTH:
        raise ValueError(
            f"Metadata is {len(data)} bytes, the maximum is {MAX_METADATA_LENGTH}."
        )
    return bytes([units]) + data.ljust(units * METADATA_BLOCK_UNIT, b"\x00")


def build_stream(
    header_block: bytes, audio: bytes, metaint: int, metadata: list[str]
) -> bytes:
    """
    Frames audio the way a server does: after every full ``metaint`` bytes a
    metadata block is inserted, taken from ``metadata`` in order. An empty
    string, or running out of entries, gives a zero-length block. With a
    ``metaint`` of 0 the audio follows the headers unframed.
    """
    if metaint == 0:
        return header_block + audio

    parts = [header_block]
    pending = iter(metadata)
    for start in range(0, len(audio), metaint):
        segment = audio[start : start + metaint]
        parts.append(segment)
        if len(segment) == metaint:
            parts.append(build_metadata_block(next(pending, "")))
    return b"".join(parts)
