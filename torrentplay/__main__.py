"""
Main entry point for the torrentplay application.
This module handles top-level setup, exception handling, and CLI invocation.
"""

import asyncio
import logging
import os
import sys

import typer
from rich.console import Console

from torrentplay.cli.app import COMMANDS, OMX_MODES, app
from torrentplay.cli.formatters import format_error_with_suggestions
from torrentplay.exceptions import TorrentPlayError
from torrentplay.models.config import DEFAULT_OMX_MODE

TOP_LEVEL_FLAGS = ("--help", "--version", "-v", "--verbose", "-vv")


def normalize_argv(argv: list[str]) -> list[str]:
    """
    Rewrites raw arguments into what the typer app expects.

    A first argument that is not a command is a torrent to download, and
    `--omx` may be given bare, meaning `--omx=hdmi`.
    """
    args: list[str] = []
    i = 0
    while i < len(argv):
        arg = argv[i]
        if arg == "--omx":
            following = argv[i + 1] if i + 1 < len(argv) else None
            if following in OMX_MODES:
                args.append(f"--omx={following}")
                i += 2
                continue
            args.append(f"--omx={DEFAULT_OMX_MODE}")
        else:
            args.append(arg)
        i += 1

    first = next((arg for arg in args if arg not in TOP_LEVEL_FLAGS), None)
    if first is not None and first not in COMMANDS and first != "-h":
        position = args.index(first)
        args.insert(position, "download")
    return args


def main() -> None:
    """Main entry point function."""
    if os.name == "nt":
        try:
            sys.stdout.reconfigure(encoding="utf-8")
            sys.stderr.reconfigure(encoding="utf-8")
        except (TypeError, AttributeError):
            pass

    log = logging.getLogger("torrentplay")
    console = Console(stderr=True)

    try:
        app(args=normalize_argv(sys.argv[1:]))
    except (typer.Exit, typer.Abort):
        pass
    except (KeyboardInterrupt, asyncio.CancelledError):
        console.print("\n[yellow]Operation cancelled by user.[/yellow]")
        sys.exit(0)
    except TorrentPlayError as e:
        console.print(f"\n{format_error_with_suggestions(e)}")
        sys.exit(1)
    except Exception as e:
        console.print(f"\n{format_error_with_suggestions(e, {'type': 'Unexpected'})}")
        log.debug("Full traceback:", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
