"""
Defines the command-line interface for the application using Typer.
"""

import asyncio
import json
import logging
import os
import sys
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler

from torrentplay import __version__
from torrentplay.exceptions import ConfigurationError
from torrentplay.models.config import PlayerChoice, RunConfig
from torrentplay.storage.config_manager import ConfigManager

from .formatters import BUG_NOTICE, print_config

console = Console()

logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            console=console,
            rich_tracebacks=True,
            show_path=False,
            show_level=False,
            markup=True,
        )
    ],
)
log = logging.getLogger("torrentplay")

app = typer.Typer(
    name="torrentplay",
    help=(
        "Stream a torrent to a media player while it downloads. Use 'torrentplay"
        " <command> --help' for more info."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)

COMMANDS = ("download", "create", "info", "config", "version", "help")
OMX_MODES = ("hdmi", "local", "both", "alsa")


def get_config_dir() -> Path:
    if os.name == "nt":
        base_dir = Path(os.getenv("APPDATA", "~\\AppData\\Roaming"))
    else:
        base_dir = Path(os.getenv("XDG_CONFIG_HOME", "~/.config"))
    return base_dir.expanduser() / "torrentplay"


CONFIG_DIR = get_config_dir()
CONFIG_FILE = CONFIG_DIR / "config.ini"


def debug_enabled() -> bool:
    return bool(os.environ.get("DEBUG"))


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase logging verbosity (-vv for debug).",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
):
    """Torrent streaming CLI"""
    if version:
        console.print(f"[bold]torrentplay[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    log_level = "INFO"
    if verbose >= 2 or debug_enabled():
        log_level = "DEBUG"
    logging.getLogger("torrentplay").setLevel(log_level)

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command(name="download")
def download_command(
    torrent_id: str = typer.Argument(
        ..., help="Magnet link, info hash, .torrent file or http(s) URL to one."
    ),
    # --- Output Options ---
    out: Path | None = typer.Option(
        None, "-o", "--out", help="Save the download here instead of a temporary directory."
    ),
    list_files: bool = typer.Option(
        False, "-l", "--list", help="List the files in the torrent and exit."
    ),
    index: int | None = typer.Option(
        None, "-i", "--index", help="Stream this file instead of the largest one."
    ),
    quiet: bool = typer.Option(False, "-q", "--quiet", help="Do not show the status view."),
    stdout: bool = typer.Option(
        False, "--stdout", help="Write the selected file to standard output."
    ),
    # --- Streaming Options ---
    port: int | None = typer.Option(
        None, "-p", "--port", help="Port of the content server (default 8000)."
    ),
    blocklist: str | None = typer.Option(
        None, "-b", "--blocklist", help="Path or URL of a peer blocklist."
    ),
    subtitles: Path | None = typer.Option(
        None, "-t", "--subtitles", help="Load a subtitles file into the player."
    ),
    # --- Players ---
    airplay: bool = typer.Option(False, "--airplay", help="Stream to an AirPlay device."),
    chromecast: bool = typer.Option(False, "--chromecast", help="Stream to a Chromecast."),
    xbmc: bool = typer.Option(False, "--xbmc", help="Stream to XBMC/Kodi."),
    vlc: bool = typer.Option(False, "--vlc", help="Open the stream in VLC."),
    mplayer: bool = typer.Option(False, "--mplayer", help="Open the stream in MPlayer."),
    mpv: bool = typer.Option(False, "--mpv", help="Open the stream in mpv."),
    omx: str | None = typer.Option(
        None,
        "--omx",
        help=f"Open the stream in OMXPlayer; audio output is one of {', '.join(OMX_MODES)}.",
    ),
):
    """Download a torrent and stream it while it downloads."""
    config_manager = ConfigManager(CONFIG_FILE)
    defaults = config_manager.load_defaults()

    cli_options = {
        key: value
        for key, value in {
            "out": out,
            "index": index,
            "port": port,
            "blocklist": blocklist,
            "subtitles": subtitles,
            "omx_mode": omx,
        }.items()
        if value is not None
    }
    options = {**defaults, **cli_options}
    default_player = options.pop("player", PlayerChoice.NONE)
    options["quiet"] = quiet or options.get("quiet", False)

    config = RunConfig.from_options(
        torrent_id,
        player_flags={
            PlayerChoice.AIRPLAY: airplay,
            PlayerChoice.CHROMECAST: chromecast,
            PlayerChoice.XBMC: xbmc,
            PlayerChoice.VLC: vlc,
            PlayerChoice.MPLAYER: mplayer,
            PlayerChoice.MPV: mpv,
            PlayerChoice.OMX: omx is not None,
        },
        default_player=default_player,
        debug=debug_enabled(),
        list_files=list_files,
        stdout=stdout,
        **options,
    )
    if config.stdout:
        # Keep the piped stream clean.
        console.stderr = True

    try:
        from torrentplay.engine.libtorrent_engine import LibtorrentEngine
    except ImportError as e:
        raise ConfigurationError(
            "The libtorrent bindings are required to download. "
            "Install them with: pip install 'torrentplay[libtorrent]'"
        ) from e
    from torrentplay.core.runner import SessionRunner

    async def _download_async() -> int:
        runner = SessionRunner(config, LibtorrentEngine(), console)
        return await runner.run()

    code = asyncio.run(_download_async())
    if code != 0:
        console.print(f"\n[yellow]{BUG_NOTICE}[/yellow]")
    raise typer.Exit(code=code)


@app.command()
def info(
    torrent_id: str = typer.Argument(
        ..., help="Magnet link, info hash, .torrent file or http(s) URL to one."
    ),
    out: Path | None = typer.Option(
        None, "-o", "--out", help="Write the JSON to this file instead of stdout."
    ),
):
    """Print a torrent's metadata as JSON."""
    from torrentplay.engine.codec import describe_torrent

    data = asyncio.run(describe_torrent(torrent_id))
    text = json.dumps(data, indent=2, default=str)
    if out:
        out.write_text(text + "\n", encoding="utf-8")
        console.print(f"[green]✓ Metadata written to {out}[/green]")
    else:
        typer.echo(text)


@app.command()
def create(
    path: Path = typer.Argument(..., help="File or directory to create a torrent for."),
    out: Path | None = typer.Option(
        None, "-o", "--out", help="Write the .torrent here instead of stdout."
    ),
    announce: list[str] | None = typer.Option(  # noqa: B008
        None, "-a", "--announce", help="Tracker URL; may be given more than once."
    ),
):
    """Create a .torrent file."""
    from torrentplay.engine.codec import create_torrent

    data = create_torrent(path, announce=announce)
    if out:
        out.write_bytes(data)
        console.print(f"[green]✓ Torrent written to {out}[/green]")
    else:
        sys.stdout.buffer.write(data)
        sys.stdout.buffer.flush()


@app.command(name="config")
def config_command():
    """Show the defaults applied to every download."""
    config_manager = ConfigManager(CONFIG_FILE)
    print_config(console, CONFIG_FILE, config_manager.describe())


@app.command()
def version():
    """Show version and exit."""
    console.print(f"[bold]torrentplay[/bold] version [cyan]{__version__}[/cyan]")


@app.command(name="help")
def help_command(ctx: typer.Context):
    """Show this message and exit."""
    console.print(ctx.parent.get_help())
