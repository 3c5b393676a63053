"""
Entry point for ``icy-ripper`` and ``python -m icy_ripper``.
"""

import asyncio
import logging
import os
import sys

from rich.console import Console

from icy_ripper.cli.app import app
from icy_ripper.cli.formatters import format_error_with_suggestions
from icy_ripper.exceptions import IcyRipperError

log = logging.getLogger("icy_ripper")


def _use_utf8_streams() -> None:
    # Station names and titles are frequently outside the Windows code page
    if os.name != "nt":
        return
    for stream in (sys.stdout, sys.stderr):
        reconfigure = getattr(stream, "reconfigure", None)
        if reconfigure is not None:
            reconfigure(encoding="utf-8")


def main() -> None:
    _use_utf8_streams()
    console = Console(stderr=True)

    try:
        app()
    except (KeyboardInterrupt, asyncio.CancelledError):
        console.print(
            "\n[yellow]⏹  Recording interrupted.[/yellow]"
            " Tracks written so far are kept."
        )
        sys.exit(130)
    except IcyRipperError as e:
        console.print(format_error_with_suggestions(e))
        sys.exit(1)
    except Exception as e:
        console.print(format_error_with_suggestions(e, {"type": "Unexpected"}))
        log.debug("Full traceback:", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
