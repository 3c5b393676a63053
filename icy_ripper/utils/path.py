"""
Utilities for building sanitized track file names from a template.
"""

import re
from datetime import datetime
from pathlib import Path
from typing import Any

from pathvalidate import sanitize_filename, sanitize_filepath

from icy_ripper.core.icy import TrackIdentity


def create_dir(directory_path: Path) -> None:
    """Creates a directory if it does not already exist."""
    directory_path.mkdir(parents=True, exist_ok=True)


class TrackNameFormatter:
    """
    Formats a file name template string using the announced track identity.
    The result carries no extension; the track writer appends it.
    """

    def __init__(self, template: str) -> None:
        self.template = template

    def format_name(
        self,
        track_number: int,
        identity: TrackIdentity | None,
        station: str = "",
    ) -> str:
        """Generates a final, sanitized relative file path from the template."""
        template_vars = self._get_template_vars(track_number, identity, station)
        formatted_str = self._resolve_conditionals(self.template, template_vars)
        final_str = formatted_str.format(**template_vars)
        return str(sanitize_filepath(final_str, platform="auto"))

    def _resolve_conditionals(
        self, template_str: str, variables: dict[str, Any]
    ) -> str:
        pattern = re.compile(r"%\{\?(\w+),([^|]*?)\|([^}]*?)\}")

        def replacer(match: re.Match) -> str:
            key, true_val, false_val = match.groups()
            return true_val if variables.get(key) else false_val

        return pattern.sub(replacer, template_str)

    def _get_template_vars(
        self, track_number: int, identity: TrackIdentity | None, station: str
    ) -> dict[str, Any]:
        """Builds the variable dictionary for template formatting."""
        # Before the first metadata block the only name we have is the station's
        title = identity.title if identity else ""
        if not title:
            title = station or "Unknown Title"

        return {
            "tracknumber": f"{track_number:03}",
            "artist": sanitize_filename(identity.artist if identity else ""),
            "title": sanitize_filename(title),
            "station": sanitize_filename(station or "Unknown Station"),
            "date": datetime.now().strftime("%Y-%m-%d"),
        }
