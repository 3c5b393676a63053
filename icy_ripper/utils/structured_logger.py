"""
Structured logging for rip sessions.
Emits human-readable log lines and, optionally, JSON lines with session context.
"""

import json
import logging
import time
from datetime import datetime
from pathlib import Path
from typing import Any, TextIO

from rich.markup import escape


class StructuredLogger:
    """
    Logger that writes an event name plus key/value context.

    Usage:
        logger = StructuredLogger("icy_ripper", log_dir=Path("logs"))
        logger.info("track_rotated", track_number=3, artist="A", title="B")
    """

    def __init__(
        self,
        name: str,
        log_dir: Path | None = None,
        enable_json: bool = True,
        enable_console: bool = True,
    ):
        """
        Initialize structured logger.

        Args:
            name: Logger name
            log_dir: Directory for JSON log files (None = disabled)
            enable_json: Enable JSON file logging
            enable_console: Enable console output through the standard logger
        """
        self.name = name
        self.enable_json = enable_json and log_dir is not None
        self.enable_console = enable_console
        self._logger = logging.getLogger(name)

        self._json_file: TextIO | None = None
        self.json_log_path: Path | None = None
        if self.enable_json:
            log_dir.mkdir(parents=True, exist_ok=True)
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            self.json_log_path = log_dir / f"icy_ripper_{timestamp}.jsonl"
            self._json_file = open(self.json_log_path, "a", encoding="utf-8")  # noqa: SIM115

        # Session context (added to all JSON entries)
        self._session_context: dict[str, Any] = {
            "session_id": f"{int(time.time())}_{id(self)}",
        }

    def set_session_context(self, **kwargs) -> None:
        """Set session-level context that appears in all JSON entries."""
        self._session_context.update(kwargs)

    def _format_message(self, event: str, **context) -> str:
        # Console handlers render markup, and titles may contain brackets
        parts = [escape(f"[{event}]")]
        parts.extend(escape(f"{key}={value}") for key, value in context.items())
        return " ".join(parts)

    def _write_json(self, level: str, event: str, **context) -> None:
        if not self._json_file or self._json_file.closed:
            return
        entry = {
            "timestamp": datetime.now().isoformat(),
            "level": level,
            "event": event,
            **self._session_context,
            **context,
        }
        try:
            self._json_file.write(json.dumps(entry, default=str) + "\n")
            self._json_file.flush()
        except OSError as e:
            self._logger.warning(f"JSON logging failed: {e}")
            self._json_file.close()

    def log(self, level: int, event: str, **context) -> None:
        if self.enable_console:
            self._logger.log(level, self._format_message(event, **context))
        if self.enable_json:
            self._write_json(logging.getLevelName(level), event, **context)

    def debug(self, event: str, **context) -> None:
        self.log(logging.DEBUG, event, **context)

    def info(self, event: str, **context) -> None:
        self.log(logging.INFO, event, **context)

    def warning(self, event: str, **context) -> None:
        self.log(logging.WARNING, event, **context)

    def error(self, event: str, **context) -> None:
        self.log(logging.ERROR, event, **context)

    def close(self) -> None:
        """Close JSON log file."""
        if self._json_file and not self._json_file.closed:
            self._json_file.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class RipLogger:
    """Event facade used by a rip session."""

    def __init__(self, logger: StructuredLogger | None = None):
        self.logger = logger or StructuredLogger(
            "icy_ripper.session", enable_json=False
        )

    def session_started(self, source: str, output_dir: str, max_bytes: int):
        self.logger.info(
            "session_started", source=source, output_dir=output_dir, max_bytes=max_bytes
        )

    def headers_parsed(self, station: str, metaint: int, content_type: str):
        self.logger.info(
            "headers_parsed",
            station=station,
            metaint=metaint,
            content_type=content_type,
        )

    def track_rotated(self, track_number: int, artist: str, title: str, path: str):
        self.logger.info(
            "track_rotated",
            track_number=track_number,
            artist=artist,
            title=title,
            path=path,
        )

    def metadata_repeated(self, artist: str, title: str):
        self.logger.debug("metadata_repeated", artist=artist, title=title)

    def metadata_skipped(self, reason: str):
        self.logger.warning("metadata_skipped", reason=reason)

    def capacity_reached(self, bytes_written: int, max_bytes: int):
        self.logger.info(
            "capacity_reached", bytes_written=bytes_written, max_bytes=max_bytes
        )

    def session_completed(
        self,
        duration_s: float,
        tracks_started: int,
        bytes_written: int,
        metadata_skipped: int,
        reason: str,
    ):
        self.logger.info(
            "session_completed",
            duration_s=round(duration_s, 2),
            tracks_started=tracks_started,
            bytes_written=bytes_written,
            size_mb=round(bytes_written / (1024 * 1024), 2),
            metadata_skipped=metadata_skipped,
            reason=reason,
        )


def create_structured_logger(
    log_dir: Path | None = None, enable_json: bool = False
) -> tuple[StructuredLogger, RipLogger]:
    """
    Create the base structured logger and the session event facade.

    Returns:
        Tuple of (base_logger, rip_logger)
    """
    base = StructuredLogger("icy_ripper", log_dir=log_dir, enable_json=enable_json)
    return base, RipLogger(base)
