from __future__ import annotations

from pathlib import Path

import mutagen.id3 as id3
import pytest

from icy_ripper.core.icy import TrackIdentity
from icy_ripper.exceptions import CapacityExceededError, TrackWriterError
from icy_ripper.media import Tagger, TrackWriter


@pytest.mark.asyncio
async def test_writer_creates_nested_destination(tmp_path: Path) -> None:
    writer = TrackWriter(tmp_path, extension="ogg")
    path = await writer.set_destination("Station/001 - Song")
    await writer.write(b"abc")
    await writer.write(b"def")
    await writer.close()

    assert path == tmp_path / "Station" / "001 - Song.ogg"
    assert path.read_bytes() == b"abcdef"
    assert writer.bytes_written == 6
    assert writer.current_path == path


@pytest.mark.asyncio
async def test_write_without_destination_fails(tmp_path: Path) -> None:
    writer = TrackWriter(tmp_path)
    with pytest.raises(TrackWriterError):
        await writer.write(b"data")


@pytest.mark.asyncio
async def test_redirect_closes_previous_and_truncates(tmp_path: Path) -> None:
    (tmp_path / "b.mp3").write_bytes(b"old contents")
    writer = TrackWriter(tmp_path)

    first = await writer.set_destination("a")
    await writer.write(b"one")
    second = await writer.set_destination("b")
    await writer.write(b"two")
    await writer.close()

    assert first.read_bytes() == b"one"
    assert second.read_bytes() == b"two"
    assert writer.bytes_written == 6


@pytest.mark.asyncio
async def test_capacity_truncates_exactly_at_ceiling(tmp_path: Path) -> None:
    writer = TrackWriter(tmp_path, max_bytes=10)
    path = await writer.set_destination("capped")

    await writer.write(b"123456")
    with pytest.raises(CapacityExceededError):
        await writer.write(b"789ABC")
    assert writer.exhausted
    assert writer.bytes_written == 10

    with pytest.raises(CapacityExceededError):
        await writer.write(b"more")
    await writer.close()

    assert path.read_bytes() == b"123456789A"


@pytest.mark.asyncio
async def test_capacity_is_global_across_files(tmp_path: Path) -> None:
    writer = TrackWriter(tmp_path, max_bytes=5)
    first = await writer.set_destination("first")
    await writer.write(b"abc")
    second = await writer.set_destination("second")
    with pytest.raises(CapacityExceededError):
        await writer.write(b"defg")
    await writer.close()

    assert first.read_bytes() == b"abc"
    assert second.read_bytes() == b"de"
    assert writer.remaining == 0


@pytest.mark.asyncio
async def test_reaching_ceiling_exactly_is_not_an_error(tmp_path: Path) -> None:
    writer = TrackWriter(tmp_path, max_bytes=4)
    await writer.set_destination("exact")
    await writer.write(b"1234")
    assert not writer.exhausted
    with pytest.raises(CapacityExceededError):
        await writer.write(b"5")
    await writer.close()


@pytest.mark.asyncio
async def test_zero_max_bytes_means_unlimited(tmp_path: Path) -> None:
    writer = TrackWriter(tmp_path, max_bytes=0)
    await writer.set_destination("free")
    await writer.write(b"x" * 100000)
    await writer.close()
    assert writer.max_bytes is None
    assert writer.remaining is None


def test_tagger_writes_id3_frames(tmp_path: Path) -> None:
    path = tmp_path / "track.mp3"
    path.write_bytes(b"\xff\xfb\x90\x00" + b"\x00" * 400)

    tagged = Tagger().tag_track(
        path,
        TrackIdentity("Artist", "Title"),
        7,
        station="Radio Test",
        stream_url="http://radio.example/",
    )

    assert tagged
    tags = id3.ID3(path)
    assert tags["TIT2"].text == ["Title"]
    assert tags["TPE1"].text == ["Artist"]
    assert tags["TRCK"].text == ["7"]
    assert tags["TALB"].text == ["Radio Test"]
    assert path.read_bytes().endswith(b"\xff\xfb\x90\x00" + b"\x00" * 400)


def test_tagger_skips_non_mp3(tmp_path: Path) -> None:
    path = tmp_path / "track.aac"
    path.write_bytes(b"raw")
    assert not Tagger().tag_track(path, TrackIdentity("", "Title"), 1)
    assert path.read_bytes() == b"raw"


@pytest.mark.asyncio
async def test_redirect_clears_exhausted_but_keeps_ceiling(tmp_path: Path) -> None:
    writer = TrackWriter(tmp_path, max_bytes=3)
    await writer.set_destination("full")
    with pytest.raises(CapacityExceededError):
        await writer.write(b"abcd")
    with pytest.raises(CapacityExceededError):
        await writer.write(b"")

    path = await writer.set_destination("next")
    assert not writer.exhausted
    await writer.write(b"")
    with pytest.raises(CapacityExceededError):
        await writer.write(b"e")
    await writer.close()

    assert path.read_bytes() == b""
    assert writer.bytes_written == 3
