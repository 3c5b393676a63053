"""
Writes ripped audio into per-track files, enforcing an optional global size cap.
"""

import asyncio
import logging
from pathlib import Path

import aiofiles
from aiofiles.threadpool.binary import AsyncBufferedIOBase

from icy_ripper.exceptions import CapacityExceededError, TrackWriterError
from icy_ripper.utils.path import create_dir

log = logging.getLogger(__name__)


class TrackWriter:
    """
    A capacity-bounded audio sink that can be redirected to a new file.

    ``bytes_written`` is cumulative over every file of the session. Once the
    ceiling is reached the write that crossed it is truncated exactly at the
    ceiling and ``CapacityExceededError`` is raised; later writes are refused
    until the writer is redirected. The ceiling is global, so a redirected
    writer still refuses any byte past it.
    """

    def __init__(
        self, output_dir: Path, max_bytes: int | None = None, extension: str = "mp3"
    ):
        self.output_dir = Path(output_dir)
        self.max_bytes = max_bytes or None
        self.extension = extension
        self.bytes_written = 0
        self.exhausted = False
        self._file: AsyncBufferedIOBase | None = None
        self._path: Path | None = None

    @property
    def current_path(self) -> Path | None:
        return self._path

    @property
    def remaining(self) -> int | None:
        if self.max_bytes is None:
            return None
        return max(0, self.max_bytes - self.bytes_written)

    async def set_destination(self, name: str) -> Path:
        """Closes the open file and starts a new one, truncating it if it exists."""
        await self.close()
        self.exhausted = False
        path = self.output_dir / f"{name}.{self.extension}"
        try:
            await asyncio.to_thread(create_dir, path.parent)
            self._file = await aiofiles.open(path, "wb")
        except OSError as e:
            raise TrackWriterError(f"Cannot open '{path}' for writing: {e}") from e
        self._path = path
        log.debug(f"Writing audio to '{path}'")
        return path

    async def write(self, data: bytes) -> None:
        if self._file is None:
            raise TrackWriterError("No destination file has been set.")
        if self.exhausted:
            raise CapacityExceededError(
                f"Output limit of {self.max_bytes} bytes already reached."
            )

        remaining = self.remaining
        exceeded = remaining is not None and len(data) > remaining
        if exceeded:
            data = data[:remaining]

        if data:
            try:
                await self._file.write(data)
            except OSError as e:
                raise TrackWriterError(f"Failed to write to '{self._path}': {e}") from e
            self.bytes_written += len(data)

        if exceeded:
            self.exhausted = True
            raise CapacityExceededError(
                f"Output limit of {self.max_bytes} bytes reached."
            )

    async def close(self) -> None:
        if self._file is not None:
            await self._file.close()
            self._file = None
