"""
Drives one rip session: reads the stream, demultiplexes it, and writes one file
per announced track.
"""

import logging
import time
from pathlib import Path

from icy_ripper.cli.progress_manager import ProgressManager
from icy_ripper.exceptions import CapacityExceededError, MetadataFormatError
from icy_ripper.media import Tagger, TrackWriter
from icy_ripper.models.config import RipConfig, get_extension
from icy_ripper.models.stats import RipStats
from icy_ripper.stream.source import StreamSource
from icy_ripper.utils.path import TrackNameFormatter
from icy_ripper.utils.structured_logger import RipLogger

from .demux import (
    AudioState,
    DemuxController,
    HeaderState,
    MetadataState,
    StateKind,
)
from .icy import (
    IcyHeaders,
    StreamMetadata,
    TrackIdentity,
    parse_icy_headers,
    parse_stream_metadata,
)

log = logging.getLogger(__name__)


class RipSession:
    """
    Orchestrates the demultiplexer and the track writer for a single stream.

    The demux callbacks run synchronously while a chunk is processed. They only
    update parser-side state (the metadata boundary, the last track identity)
    and queue writer operations, which ``run`` then awaits in stream order
    before the next read.
    """

    def __init__(
        self,
        config: RipConfig,
        source: StreamSource,
        writer: TrackWriter,
        tagger: Tagger | None = None,
        logger: RipLogger | None = None,
        progress: ProgressManager | None = None,
    ):
        self.config = config
        self.source = source
        self.writer = writer
        self.tagger = tagger
        self.logger = logger or RipLogger()
        self.progress = progress
        self.stats = RipStats()
        self.formatter = TrackNameFormatter(config.output_template)

        self.headers: IcyHeaders | None = None
        self.track_number = 0
        self.last_identity: TrackIdentity | None = None
        self._last_metadata: StreamMetadata | None = None
        self._pending: list[tuple[str, object]] = []

        self.audio_state = AudioState(on_audio=self._on_audio)
        self.controller = DemuxController(start=StateKind.HEADER)
        self.controller.register(HeaderState(on_headers=self._on_headers))
        self.controller.register(self.audio_state)
        self.controller.register(MetadataState(on_metadata=self._on_metadata))

    # --- Demux callbacks ---

    def _on_headers(self, text: str) -> None:
        headers = parse_icy_headers(text)
        self.headers = headers
        # Must be set before the rest of this chunk is dispatched as audio
        self.audio_state.metadata_boundary = headers.metaint
        self.stats.station = headers.name
        self.writer.extension = get_extension(headers.content_type)
        if headers.metaint == 0:
            log.warning("Stream announces Icy-Metaint 0; it will be saved as one file.")
        self.logger.headers_parsed(headers.name, headers.metaint, headers.content_type)
        self._pending.append(("open", None))

    def _on_audio(self, data: bytes) -> None:
        self._pending.append(("audio", data))

    def _on_metadata(self, text: str) -> None:
        self.stats.metadata_blocks += 1
        try:
            metadata = parse_stream_metadata(text)
        except MetadataFormatError as e:
            self.stats.metadata_skipped += 1
            self.logger.metadata_skipped(str(e))
            return

        identity = metadata.identity
        if identity == self.last_identity:
            self.logger.metadata_repeated(identity.artist, identity.title)
            return

        self.last_identity = identity
        self._pending.append(("rotate", metadata))

    # --- Writer operations ---

    async def _flush(self) -> None:
        pending, self._pending = self._pending, []
        for action, payload in pending:
            if action == "audio":
                await self._write(payload)
            elif action == "rotate":
                await self._rotate(payload)
            elif action == "open":
                await self._open_initial_track()

    async def _write(self, data: bytes) -> None:
        try:
            await self.writer.write(data)
        finally:
            self.stats.bytes_written = self.writer.bytes_written
            self.stats.update_speed_stats(self.writer.bytes_written)
            if self.progress:
                self.progress.update(self.stats)

    async def _open_initial_track(self) -> None:
        name = self.formatter.format_name(self.track_number, None, self.stats.station)
        path = await self.writer.set_destination(name)
        log.debug(f"Recording stream start to '{path}'")

    async def _rotate(self, metadata: StreamMetadata) -> None:
        await self._finish_track()
        self.track_number += 1
        self._last_metadata = metadata
        identity = metadata.identity

        name = self.formatter.format_name(
            self.track_number, identity, self.stats.station
        )
        path = await self.writer.set_destination(name)

        self.stats.tracks_started += 1
        self.stats.current_title = str(identity)
        self.logger.track_rotated(
            self.track_number, identity.artist, identity.title, str(path)
        )
        if self.progress:
            self.progress.start_track(self.track_number, str(identity))

    async def _finish_track(self) -> None:
        """Closes the current file and tags it if it belongs to an announced track."""
        path = self.writer.current_path
        await self.writer.close()
        if not (self.tagger and path and self._last_metadata):
            return
        metadata = self._last_metadata
        self.tagger.tag_track(
            Path(path),
            metadata.identity,
            self.track_number,
            station=self.stats.station,
            stream_url=metadata.stream_url,
        )

    # --- Read loop ---

    async def run(self) -> RipStats:
        """
        Reads until the source is exhausted or the output limit is reached.

        Protocol errors in the headers and I/O failures propagate; a reached
        output limit ends the session normally.
        """
        start_time = time.monotonic()
        reason = "error"
        self.logger.session_started(
            self.source.description, self.config.output_dir, self.config.max_bytes
        )
        try:
            while True:
                chunk = await self.source.read()
                if not chunk:
                    self.stats.ended_by_source = True
                    reason = "end_of_stream"
                    if self.controller.current is StateKind.HEADER:
                        log.warning(
                            "Stream ended before the response headers were complete."
                        )
                    break

                self.controller.process(chunk)
                try:
                    await self._flush()
                except CapacityExceededError:
                    self.stats.capacity_reached = True
                    reason = "capacity_reached"
                    self.logger.capacity_reached(
                        self.writer.bytes_written, self.config.max_bytes
                    )
                    break
        finally:
            self._pending.clear()
            await self._finish_track()
            await self.source.close()
            self.logger.session_completed(
                time.monotonic() - start_time,
                self.stats.tracks_started,
                self.stats.bytes_written,
                self.stats.metadata_skipped,
                reason,
            )
        return self.stats


async def probe_stream(
    source: StreamSource, max_scan_bytes: int = 1048576
) -> tuple[IcyHeaders | None, StreamMetadata | None]:
    """
    Reads a stream until its first non-empty metadata block and returns the
    headers and that block. Stops early when the station has no metadata or
    after ``max_scan_bytes``. Malformed blocks are skipped.
    """
    found: dict[str, object] = {}
    audio_state = AudioState()

    def on_headers(text: str) -> None:
        headers = parse_icy_headers(text)
        audio_state.metadata_boundary = headers.metaint
        found["headers"] = headers

    def on_metadata(text: str) -> None:
        try:
            found.setdefault("metadata", parse_stream_metadata(text))
        except MetadataFormatError as e:
            log.debug(f"Skipping malformed metadata: {e}")

    controller = DemuxController(start=StateKind.HEADER)
    controller.register(HeaderState(on_headers=on_headers))
    controller.register(audio_state)
    controller.register(MetadataState(on_metadata=on_metadata))

    scanned = 0
    try:
        while "metadata" not in found and scanned < max_scan_bytes:
            headers = found.get("headers")
            if headers is not None and headers.metaint == 0:
                break
            chunk = await source.read()
            if not chunk:
                break
            scanned += len(chunk)
            controller.process(chunk)
    finally:
        await source.close()

    return found.get("headers"), found.get("metadata")
