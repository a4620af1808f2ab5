"""
Chooses the file to stream, builds its playback URLs, and launches and
supervises the selected player.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Sequence

from torrentplay.engine.base import TorrentFile
from torrentplay.exceptions import (
    DeviceDiscoveryError,
    PlaybackLaunchError,
    TorrentPlayError,
)
from torrentplay.models.config import PlayerChoice, PlayerKind, RunConfig
from torrentplay.server.http import guess_content_type
from torrentplay.utils.network import lan_address

from .casters import CASTERS, DeviceCaster
from .locator import PlayerLocator, default_locator

log = logging.getLogger(__name__)

VLC_ARGS_DEBUG = ["-q", "--play-and-exit"]
VLC_ARGS = [
    "--play-and-exit",
    "--extraintf=http:logger",
    "--verbose=2",
    "--file-logging",
    "--logfile=vlc-log.txt",
]
MPLAYER_ARGS = ["-ontop", "-really-quiet", "-noidx", "-loop", "0"]
MPV_ARGS = ["--ontop", "--really-quiet", "--loop=no"]

EXECUTABLES = {
    PlayerChoice.VLC: "vlc",
    PlayerChoice.MPLAYER: "mplayer",
    PlayerChoice.MPV: "mpv",
    PlayerChoice.OMX: "omxplayer",
}


@dataclass(frozen=True)
class PlaybackTarget:
    """Where the selected file is served: `url` for the LAN, `local_url` for loopback."""

    index: int
    url: str
    local_url: str
    content_type: str = "application/octet-stream"


@dataclass
class PlayerProcess:
    choice: PlayerChoice
    process: asyncio.subprocess.Process | None = None
    task: asyncio.Task | None = None
    on_complete: Callable[[], None] | None = None


def select_file_index(files: Sequence[TorrentFile], requested: int | None = None) -> int:
    """The requested index, else the largest file (first one on ties)."""
    if requested is not None:
        if requested >= len(files):
            raise TorrentPlayError(
                f"File index {requested} is out of range (torrent has {len(files)} files)."
            )
        return requested
    if not files:
        raise TorrentPlayError("Torrent contains no files.")
    largest = 0
    for i, torrent_file in enumerate(files):
        if torrent_file.length > files[largest].length:
            largest = i
    return largest


def resolve_target(
    config: RunConfig, file_index: int, host: str | None = None, name: str = ""
) -> PlaybackTarget:
    host = host or lan_address()
    return PlaybackTarget(
        index=file_index,
        url=f"http://{host}:{config.port}/{file_index}",
        local_url=f"http://localhost:{config.port}/{file_index}",
        content_type=guess_content_type(name) if name else PlaybackTarget.content_type,
    )


class PlayerOrchestrator:
    """
    Launches at most one player per run.

    Local players are spawned and watched: a clean exit calls `on_complete`,
    a failed launch or non-zero exit goes to `on_fatal`. Cast devices are
    commanded in the background and their failures are only logged.
    """

    def __init__(
        self,
        config: RunConfig,
        on_complete: Callable[[], None],
        on_fatal: Callable[[BaseException], None],
        locator: PlayerLocator | None = None,
        casters: dict[PlayerChoice, type[DeviceCaster]] | None = None,
    ):
        self.config = config
        self.on_complete = on_complete
        self.on_fatal = on_fatal
        self.locator = locator or default_locator()
        self.casters = CASTERS if casters is None else casters
        self._player: PlayerProcess | None = None

    @property
    def player(self) -> PlayerProcess | None:
        return self._player

    def resolve(self, file_index: int, name: str = "", host: str | None = None) -> PlaybackTarget:
        return resolve_target(self.config, file_index, host=host, name=name)

    def player_args(self, choice: PlayerChoice) -> list[str]:
        """Player options, including the subtitles argument when one is configured."""
        subtitles = str(self.config.subtitles) if self.config.subtitles else None
        if choice is PlayerChoice.VLC:
            args = list(VLC_ARGS_DEBUG if self.config.debug else VLC_ARGS)
            if subtitles:
                args.append(f"--sub-file={subtitles}")
        elif choice is PlayerChoice.MPLAYER:
            args = list(MPLAYER_ARGS)
            if subtitles:
                args += ["-sub", subtitles]
        elif choice is PlayerChoice.MPV:
            args = list(MPV_ARGS)
            if subtitles:
                args.append(f"--sub-file={subtitles}")
        elif choice is PlayerChoice.OMX:
            args = ["-r", "-o", self.config.omx_mode]
            if subtitles:
                args += ["--subtitles", subtitles]
        else:
            raise ValueError(f"{choice.value} is not a local player")
        return args

    def build_command(self, choice: PlayerChoice, target: PlaybackTarget) -> list[str]:
        """
        Raises:
            PlayerNotFoundError: If the player's executable cannot be located.
        """
        executable = self.locator.locate(EXECUTABLES[choice])
        args = self.player_args(choice)
        if choice is PlayerChoice.VLC:
            return [executable, target.local_url, *args]
        return [executable, *args, target.local_url]

    async def launch(self, target: PlaybackTarget) -> PlayerProcess:
        """
        Starts the configured player for `target`. Calling it again returns the
        player that is already running.

        Raises:
            PlayerNotFoundError: If a local player cannot be located.
            PlaybackLaunchError: If a local player cannot be spawned.
        """
        if self._player is not None:
            return self._player

        choice = self.config.player
        player = PlayerProcess(choice=choice, on_complete=self.on_complete)
        self._player = player

        if choice.kind is PlayerKind.CAST:
            caster = self.casters[choice]()
            player.task = asyncio.create_task(self._cast(caster, target))
        elif choice.kind is PlayerKind.LOCAL:
            command = self.build_command(choice, target)
            log.debug(f"Launching player: {' '.join(command)}")
            try:
                player.process = await asyncio.create_subprocess_exec(
                    *command,
                    stdin=asyncio.subprocess.DEVNULL,
                    stdout=asyncio.subprocess.DEVNULL,
                    stderr=asyncio.subprocess.DEVNULL,
                )
            except OSError as e:
                raise PlaybackLaunchError(
                    f"Could not start {choice.display_name}: {e}"
                ) from e
            player.task = asyncio.create_task(self._supervise(player))
        return player

    async def _supervise(self, player: PlayerProcess) -> None:
        returncode = await player.process.wait()
        if returncode != 0:
            self.on_fatal(
                PlaybackLaunchError(
                    f"{player.choice.display_name} exited with status {returncode}"
                )
            )
            return
        log.debug(f"{player.choice.display_name} exited normally.")
        if player.on_complete:
            player.on_complete()

    async def _cast(self, caster: DeviceCaster, target: PlaybackTarget) -> None:
        try:
            await caster.cast(target.url, target.content_type)
        except DeviceDiscoveryError as e:
            log.warning(f"[yellow]{e} Downloading continues.[/yellow]")
        except Exception as e:
            log.warning(
                f"[yellow]{caster.name} playback failed: {e!r}. Downloading continues.[/yellow]"
            )
            log.debug("Cast failure", exc_info=True)
        else:
            log.info(f"[green]{caster.name} is playing {target.url}[/green]")

    async def close(self) -> None:
        """Cancels background casting; local players are left running."""
        player = self._player
        if player and player.task and player.process is None and not player.task.done():
            player.task.cancel()
