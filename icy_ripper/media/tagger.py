"""
Writes the announced track information as ID3 tags to ripped MP3 files.
"""

import logging
from pathlib import Path

import mutagen.id3 as id3
from mutagen import MutagenError
from mutagen.id3 import ID3NoHeaderError

from icy_ripper.core.icy import TrackIdentity

log = logging.getLogger(__name__)


class Tagger:
    """Tags finished tracks. Only MP3 output is tagged; other formats are left as-is."""

    def tag_track(
        self,
        path: Path,
        identity: TrackIdentity,
        track_number: int,
        station: str = "",
        stream_url: str = "",
    ) -> bool:
        if path.suffix.lower() != ".mp3":
            return False
        try:
            self._tag_mp3(path, identity, track_number, station, stream_url)
            return True
        except (MutagenError, OSError) as e:
            log.warning(
                f"Failed to tag file '{path.name}': {e}",
                exc_info=log.getEffectiveLevel() == logging.DEBUG,
            )
            return False

    def _tag_mp3(
        self,
        path: Path,
        identity: TrackIdentity,
        track_number: int,
        station: str,
        stream_url: str,
    ) -> None:
        try:
            audio = id3.ID3(path)
        except ID3NoHeaderError:
            audio = id3.ID3()

        audio.add(id3.TIT2(encoding=3, text=identity.title))
        if identity.artist:
            audio.add(id3.TPE1(encoding=3, text=identity.artist))
        audio.add(id3.TRCK(encoding=3, text=str(track_number)))
        if station:
            audio.add(id3.TALB(encoding=3, text=station))
        if stream_url:
            audio.add(id3.WOAS(url=stream_url))

        audio.save(filename=path, v2_version=3)
