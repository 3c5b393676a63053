"""
Dataclass for tracking rip session statistics.
"""

import time
from dataclasses import dataclass, field


@dataclass
class RipStats:
    """Tracks statistics for a rip session, including real-time speed."""

    station: str = ""
    current_title: str = ""
    tracks_started: int = 0
    metadata_blocks: int = 0
    metadata_skipped: int = 0
    bytes_written: int = 0
    capacity_reached: bool = False
    ended_by_source: bool = False

    # Real-time speed calculation fields
    current_speed_bps: float = 0.0
    peak_speed_bps: float = 0.0
    _speed_samples: list[float] = field(default_factory=list, repr=False)
    _last_progress_time: float = field(default=0.0, repr=False)
    _last_progress_bytes: int = field(default=0, repr=False)

    def __post_init__(self):
        self._last_progress_time = time.monotonic()

    def update_speed_stats(self, total_bytes_so_far: int) -> None:
        """
        Updates the receive speed based on progress.

        Args:
            total_bytes_so_far: The cumulative total of bytes written in the session.
        """
        now = time.monotonic()
        elapsed = now - self._last_progress_time

        # Update speed roughly twice per second
        if elapsed > 0.5:
            bytes_diff = total_bytes_so_far - self._last_progress_bytes
            if bytes_diff > 0:
                self._speed_samples.append(bytes_diff / elapsed)
                # Keep a sliding window of the last 10 speed samples
                if len(self._speed_samples) > 10:
                    self._speed_samples.pop(0)

                self.current_speed_bps = sum(self._speed_samples) / len(
                    self._speed_samples
                )
                self.peak_speed_bps = max(self.peak_speed_bps, self.current_speed_bps)

            self._last_progress_time = now
            self._last_progress_bytes = total_bytes_so_far
