"""
Functions for formatting and displaying data in the console using Rich.
"""

from pathlib import Path
from typing import Any, Sequence

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from torrentplay.engine.base import TorrentFile
from torrentplay.utils.formatting import format_size

BUG_NOTICE = (
    "If you think this is a bug in torrentplay, please report it "
    "together with the output of the same command run with -vv."
)


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "InvalidIdentifierError": [
            "• Pass a magnet link, a 40-character info hash, a .torrent file or an http(s) URL.",
            "• Quote magnet links so the shell does not split them at '&'.",
        ],
        "PlayerNotFoundError": [
            "• Install the player or make sure it is on your PATH.",
            "• Use --stdout to pipe the stream into a player of your choice.",
        ],
        "PlaybackLaunchError": [
            "• Run the player by hand with the printed URL to see its own error.",
            "• Run the command with -vv for the exact command line.",
        ],
        "ConfigurationError": [
            "• Only one of --airplay, --chromecast, --xbmc, --vlc, --mplayer, --mpv, --omx may be used.",
            "• Check the defaults file shown by `torrentplay config`.",
        ],
        "ClientResponseError": [
            "• The .torrent or blocklist URL could not be fetched.",
            "• Please try again in a few minutes.",
        ],
    }

    suggestions = suggestions_map.get(
        error_type, ["• Run the command with -vv for detailed logs."]
    )

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(error_msg)

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)
    content.add_row()
    content.add_row(Text("Suggestions", style="bold yellow"))
    content.add_row(Text("\n".join(suggestions)))

    if context:
        content.add_row()
        content.add_row(Text(f"Context: {context}", style="dim"))

    return Panel(
        content,
        title="[bold red]An Error Occurred[/bold red]",
        border_style="red",
        expand=False,
    )


def print_file_list(console: Console, files: Sequence[TorrentFile]):
    """Prints `index : name (size)` for each file in the torrent."""
    for i, torrent_file in enumerate(files):
        console.print(
            f"{i} : [bold]{escape(torrent_file.name)}[/bold] "
            f"[grey50]({format_size(torrent_file.length)})[/grey50]",
            highlight=False,
        )


def print_config(console: Console, config_path: Path, config_data: dict[str, Any]):
    """Displays the effective defaults and where they came from."""
    if not config_data:
        content = "[dim]No defaults set, built-in values apply.[/dim]"
    else:
        content = "\n".join(f"{key} = {value}" for key, value in config_data.items())

    console.print(
        Panel(
            content,
            title=f"Configuration ([dim]{config_path}[/dim])",
            border_style="cyan",
        )
    )
