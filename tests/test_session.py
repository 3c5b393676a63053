from __future__ import annotations

from pathlib import Path

import mutagen.id3 as id3
import pytest

from icy_ripper.core.icy import build_stream
from icy_ripper.core.session import RipSession, probe_stream
from icy_ripper.exceptions import MissingMetaIntError
from icy_ripper.media import Tagger, TrackWriter
from icy_ripper.models.config import RipConfig
from icy_ripper.stream.source import FileStreamSource

HEADER = (
    b"ICY 200 OK\r\n"
    b"icy-name: Test FM\r\n"
    b"content-type: audio/mpeg\r\n"
    b"icy-metaint: 8\r\n"
    b"\r\n"
)


def title_text(stream_title: str) -> str:
    return f"StreamTitle='{stream_title}';StreamUrl='u';"


STREAM = build_stream(
    HEADER,
    b"0" * 8 + b"1" * 8 + b"2" * 8 + b"3333",
    8,
    [title_text("A - One"), title_text("A - One"), title_text("B - Two")],
)


class ChunkSource:
    """Serves a fixed byte string in fixed-size reads."""

    def __init__(self, data: bytes, chunk_size: int = 4096):
        self.description = "memory"
        self.data = data
        self.chunk_size = chunk_size
        self.position = 0
        self.reads = 0
        self.closed = False

    async def read(self) -> bytes:
        chunk = self.data[self.position : self.position + self.chunk_size]
        self.position += len(chunk)
        self.reads += 1
        return chunk

    async def close(self) -> None:
        self.closed = True


def make_session(
    tmp_path: Path, source, max_bytes: int = 0, tagger: Tagger | None = None, **kw
) -> RipSession:
    config = RipConfig(
        output_dir=str(tmp_path), max_bytes=max_bytes, tag_tracks=False, **kw
    )
    writer = TrackWriter(tmp_path, config.max_bytes)
    return RipSession(config, source, writer, tagger=tagger)


def files(tmp_path: Path) -> dict[str, bytes]:
    return {p.name: p.read_bytes() for p in sorted(tmp_path.iterdir())}


@pytest.mark.asyncio
@pytest.mark.parametrize("chunk_size", [1, 3, 7, 13, 4096])
async def test_session_splits_tracks(tmp_path: Path, chunk_size: int) -> None:
    source = ChunkSource(STREAM, chunk_size)
    session = make_session(tmp_path, source)

    stats = await session.run()

    assert files(tmp_path) == {
        "000 - Test FM.mp3": b"00000000",
        "001 - A - One.mp3": b"1111111122222222",
        "002 - B - Two.mp3": b"3333",
    }
    assert stats.station == "Test FM"
    assert stats.tracks_started == 2
    assert stats.metadata_blocks == 3
    assert stats.bytes_written == 28
    assert stats.ended_by_source
    assert not stats.capacity_reached
    assert stats.current_title == "B - Two"
    assert source.closed


@pytest.mark.asyncio
async def test_repeated_metadata_rotates_once(tmp_path: Path) -> None:
    stream = build_stream(HEADER, b"x" * 40, 8, [title_text("Same - Song")] * 5)
    session = make_session(tmp_path, ChunkSource(stream, 5))

    stats = await session.run()

    assert stats.tracks_started == 1
    assert stats.metadata_blocks == 5
    assert files(tmp_path)["001 - Same - Song.mp3"] == b"xxxxxxxx" * 4


@pytest.mark.asyncio
async def test_malformed_metadata_is_skipped(tmp_path: Path) -> None:
    stream = build_stream(
        HEADER,
        b"a" * 8 + b"b" * 8 + b"cc",
        8,
        ["this is not metadata", title_text("Only Title")],
    )
    session = make_session(tmp_path, ChunkSource(stream, 6))

    stats = await session.run()

    assert stats.metadata_skipped == 1
    assert stats.tracks_started == 1
    assert files(tmp_path) == {
        "000 - Test FM.mp3": b"aaaaaaaabbbbbbbb",
        "001 - Only Title.mp3": b"cc",
    }


@pytest.mark.asyncio
async def test_title_without_stream_url_does_not_rotate(tmp_path: Path) -> None:
    stream = build_stream(
        HEADER,
        b"a" * 8 + b"b" * 8 + b"cc",
        8,
        ["StreamTitle='A - B';", title_text("C - D")],
    )
    session = make_session(tmp_path, ChunkSource(stream, 7))

    stats = await session.run()

    assert stats.metadata_skipped == 1
    assert stats.tracks_started == 1
    assert files(tmp_path) == {
        "000 - Test FM.mp3": b"aaaaaaaabbbbbbbb",
        "001 - C - D.mp3": b"cc",
    }


@pytest.mark.asyncio
async def test_capacity_stops_session_cleanly(tmp_path: Path) -> None:
    source = ChunkSource(STREAM, 5)
    session = make_session(tmp_path, source, max_bytes=12)

    stats = await session.run()

    assert stats.capacity_reached
    assert not stats.ended_by_source
    assert stats.bytes_written == 12
    assert source.position < len(STREAM)
    assert source.closed
    assert files(tmp_path) == {
        "000 - Test FM.mp3": b"00000000",
        "001 - A - One.mp3": b"1111",
    }


@pytest.mark.asyncio
async def test_missing_metaint_aborts(tmp_path: Path) -> None:
    source = ChunkSource(b"ICY 200 OK\r\nicy-name: x\r\n\r\naudio")
    session = make_session(tmp_path, source)

    with pytest.raises(MissingMetaIntError):
        await session.run()

    assert source.closed
    assert list(tmp_path.iterdir()) == []


@pytest.mark.asyncio
async def test_stream_without_metadata_interval(tmp_path: Path) -> None:
    stream = b"ICY 200 OK\r\nicy-metaint: 0\r\ncontent-type: audio/aacp\r\n\r\n"
    stream += b"\x01StreamTitle='x';" * 3
    session = make_session(tmp_path, ChunkSource(stream, 10))

    stats = await session.run()

    assert stats.tracks_started == 0
    assert files(tmp_path) == {"000 - Unknown Title.aac": b"\x01StreamTitle='x';" * 3}


@pytest.mark.asyncio
async def test_truncated_headers_end_quietly(tmp_path: Path) -> None:
    session = make_session(tmp_path, ChunkSource(b"ICY 200 OK\r\nicy-met"))
    stats = await session.run()
    assert stats.ended_by_source
    assert list(tmp_path.iterdir()) == []


@pytest.mark.asyncio
async def test_custom_template(tmp_path: Path) -> None:
    session = make_session(
        tmp_path,
        ChunkSource(STREAM),
        output_template="{station}/{tracknumber}_{title}",
    )
    await session.run()

    station_dir = tmp_path / "Test FM"
    assert sorted(p.name for p in station_dir.iterdir()) == [
        "000_Test FM.mp3",
        "001_One.mp3",
        "002_Two.mp3",
    ]


@pytest.mark.asyncio
async def test_finished_tracks_are_tagged(tmp_path: Path) -> None:
    session = make_session(tmp_path, ChunkSource(STREAM), tagger=Tagger())
    await session.run()

    first = id3.ID3(tmp_path / "001 - A - One.mp3")
    assert first["TPE1"].text == ["A"]
    assert first["TIT2"].text == ["One"]
    assert first["TRCK"].text == ["1"]
    assert first["TALB"].text == ["Test FM"]

    last = id3.ID3(tmp_path / "002 - B - Two.mp3")
    assert last["TIT2"].text == ["Two"]
    assert last["TRCK"].text == ["2"]


@pytest.mark.asyncio
async def test_session_from_capture_file(tmp_path: Path) -> None:
    capture = tmp_path / "capture.icy"
    capture.write_bytes(STREAM)
    out_dir = tmp_path / "out"

    session = make_session(out_dir, FileStreamSource(capture, chunk_size=9))
    stats = await session.run()

    assert stats.tracks_started == 2
    assert (out_dir / "002 - B - Two.mp3").read_bytes() == b"3333"


@pytest.mark.asyncio
async def test_probe_stream_returns_first_title() -> None:
    stream = build_stream(
        HEADER, b"1" * 16 + b"x" * 100, 8, ["", title_text("Now - Playing")]
    )
    source = ChunkSource(stream, 4)

    headers, metadata = await probe_stream(source)

    assert headers.name == "Test FM"
    assert headers.metaint == 8
    assert str(metadata.identity) == "Now - Playing"
    assert source.position < len(stream)
    assert source.closed


@pytest.mark.asyncio
async def test_probe_stream_without_metadata() -> None:
    source = ChunkSource(b"ICY 200 OK\r\nicy-metaint: 0\r\n\r\n" + b"x" * 100, 8)
    headers, metadata = await probe_stream(source)
    assert headers.metaint == 0
    assert metadata is None
