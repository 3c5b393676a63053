"""
Byte sources that feed a rip session: a live HTTP stream or a raw capture file.

Both deliver the response header block as part of the byte stream so that the
demultiplexer sees exactly what the server sent.
"""

import asyncio
import logging
from pathlib import Path
from typing import Protocol

import aiofiles
import aiohttp

from icy_ripper import __version__
from icy_ripper.core.icy import build_header_block
from icy_ripper.exceptions import StreamConnectionError
from icy_ripper.models.config import RipConfig

log = logging.getLogger(__name__)

_connection_pool: aiohttp.ClientSession | None = None
_pool_lock = asyncio.Lock()


class StreamSource(Protocol):
    """A sequential byte source. ``read`` returns b"" once the stream is exhausted."""

    description: str

    async def read(self) -> bytes: ...

    async def close(self) -> None: ...


async def get_connection_pool() -> aiohttp.ClientSession:
    """
    Gets or creates the shared aiohttp ClientSession.

    Only one connection pool is created for the lifetime of the application run.
    """
    global _connection_pool
    async with _pool_lock:
        if _connection_pool and not _connection_pool.closed:
            return _connection_pool

        connector = aiohttp.TCPConnector(
            limit=4,
            ttl_dns_cache=600,  # 10 minutes
            enable_cleanup_closed=True,
        )
        _connection_pool = aiohttp.ClientSession(
            connector=connector,
            # Audio must arrive byte-exact, never transparently decompressed
            headers={"Accept-Encoding": "identity"},
        )
        log.debug("Created stream connection pool")

    return _connection_pool


async def close_connection_pool() -> None:
    """Closes the shared global connection pool."""
    global _connection_pool
    async with _pool_lock:
        if _connection_pool and not _connection_pool.closed:
            await _connection_pool.close()
            _connection_pool = None
            log.debug("Shared stream connection pool closed.")


class HttpStreamSource:
    """Reads an ICY stream over HTTP(S), requesting in-band metadata."""

    def __init__(
        self,
        url: str,
        chunk_size: int = 8192,
        user_agent: str = "icy-ripper",
        connect_timeout: float = 15.0,
        read_timeout: float = 60.0,
        max_attempts: int = 3,
        base_delay: float = 1.5,
    ):
        self.url = url
        self.description = url
        self.chunk_size = chunk_size
        self.user_agent = user_agent
        self.timeout = aiohttp.ClientTimeout(
            total=None, sock_connect=connect_timeout, sock_read=read_timeout
        )
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self._response: aiohttp.ClientResponse | None = None
        self._header_block: bytes | None = None

    async def open(self) -> None:
        """Connects to the stream, retrying with exponential backoff."""
        last_exception: Exception | None = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                session = await get_connection_pool()
                response = await session.get(
                    self.url,
                    headers={
                        "Icy-MetaData": "1",
                        "User-Agent": f"{self.user_agent}/{__version__}",
                    },
                    timeout=self.timeout,
                    allow_redirects=True,
                )
                try:
                    response.raise_for_status()
                except aiohttp.ClientResponseError:
                    response.release()
                    raise
                self._response = response
                self._header_block = self._serialize_headers(response)
                log.debug(f"Connected to {self.url} (HTTP {response.status})")
                return
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                last_exception = e
                log.debug(
                    f"Connection attempt {attempt}/{self.max_attempts} to "
                    f"'{self.url}' failed: {e}. Retrying..."
                )
                if attempt < self.max_attempts:
                    await asyncio.sleep(self.base_delay * (2 ** (attempt - 1)))

        raise StreamConnectionError(
            f"Could not connect to '{self.url}': {last_exception}"
        ) from last_exception

    @staticmethod
    def _serialize_headers(response: aiohttp.ClientResponse) -> bytes:
        version = response.version
        status_line = (
            f"HTTP/{version.major}.{version.minor} {response.status} "
            f"{response.reason or ''}"
        )
        headers = [
            (key.decode("latin-1"), value.decode("latin-1"))
            for key, value in response.raw_headers
        ]
        return build_header_block(status_line.rstrip(), headers)

    async def read(self) -> bytes:
        if self._response is None:
            await self.open()

        if self._header_block is not None:
            block, self._header_block = self._header_block, None
            return block

        try:
            return await self._response.content.read(self.chunk_size)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise StreamConnectionError(f"Stream read failed: {e}") from e

    async def close(self) -> None:
        if self._response is not None:
            self._response.close()
            self._response = None


class FileStreamSource:
    """Replays a raw capture of an ICY stream, header block included."""

    def __init__(self, path: Path, chunk_size: int = 8192):
        self.path = Path(path)
        self.description = str(self.path)
        self.chunk_size = chunk_size
        self._file = None

    async def read(self) -> bytes:
        if self._file is None:
            try:
                self._file = await aiofiles.open(self.path, "rb")
            except OSError as e:
                raise StreamConnectionError(f"Cannot open '{self.path}': {e}") from e
        return await self._file.read(self.chunk_size)

    async def close(self) -> None:
        if self._file is not None:
            await self._file.close()
            self._file = None


def open_source(target: str, config: RipConfig) -> StreamSource:
    """Chooses a source for an http(s) URL or a local capture file."""
    if target.lower().startswith(("http://", "https://")):
        return HttpStreamSource(
            target,
            chunk_size=config.chunk_size,
            user_agent=config.user_agent,
            connect_timeout=config.connect_timeout,
            read_timeout=config.read_timeout,
            max_attempts=config.max_attempts,
        )

    path = Path(target).expanduser()
    if path.is_file():
        return FileStreamSource(path, chunk_size=config.chunk_size)

    raise StreamConnectionError(
        f"'{target}' is neither an http(s) URL nor an existing capture file."
    )
