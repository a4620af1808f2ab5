"""
Pydantic model for the resolved settings of a single run.
Constructed once from the command line and the defaults file, never mutated.
"""

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ValidationError, field_validator

from torrentplay.exceptions import ConfigurationError

DEFAULT_PORT = 8000
DEFAULT_OMX_MODE = "hdmi"
RENDER_INTERVAL = 0.5


class PlayerKind(str, Enum):
    """How a player receives the stream."""

    NONE = "none"
    CAST = "cast"
    LOCAL = "local"


class PlayerChoice(str, Enum):
    """The single playback target selected for a run."""

    NONE = "none"
    AIRPLAY = "airplay"
    CHROMECAST = "chromecast"
    XBMC = "xbmc"
    VLC = "vlc"
    MPLAYER = "mplayer"
    MPV = "mpv"
    OMX = "omx"

    @property
    def kind(self) -> PlayerKind:
        if self is PlayerChoice.NONE:
            return PlayerKind.NONE
        if self in (PlayerChoice.AIRPLAY, PlayerChoice.CHROMECAST, PlayerChoice.XBMC):
            return PlayerKind.CAST
        return PlayerKind.LOCAL

    @property
    def display_name(self) -> str:
        return PLAYER_DISPLAY_NAMES[self]


PLAYER_DISPLAY_NAMES = {
    PlayerChoice.NONE: "",
    PlayerChoice.AIRPLAY: "Airplay",
    PlayerChoice.CHROMECAST: "Chromecast",
    PlayerChoice.XBMC: "XBMC",
    PlayerChoice.VLC: "VLC",
    PlayerChoice.MPLAYER: "MPlayer",
    PlayerChoice.MPV: "mpv",
    PlayerChoice.OMX: "OMXPlayer",
}

# Device-cast targets first, then local players.
PLAYER_PRECEDENCE = (
    PlayerChoice.AIRPLAY,
    PlayerChoice.CHROMECAST,
    PlayerChoice.XBMC,
    PlayerChoice.VLC,
    PlayerChoice.MPLAYER,
    PlayerChoice.MPV,
    PlayerChoice.OMX,
)


def resolve_player(flags: dict[PlayerChoice, bool]) -> PlayerChoice:
    """
    Collapses the mutually exclusive player flags into one choice.

    Raises:
        ConfigurationError: If more than one player is selected.
    """
    selected = [choice for choice in PLAYER_PRECEDENCE if flags.get(choice)]
    if len(selected) > 1:
        names = ", ".join(f"--{choice.value}" for choice in selected)
        raise ConfigurationError(f"Only one player may be selected, got: {names}")
    return selected[0] if selected else PlayerChoice.NONE


class RunConfig(BaseModel):
    """A validated, immutable configuration for one run."""

    torrent_id: str

    # Output
    out: Path | None = None
    list_files: bool = False
    index: int | None = None
    quiet: bool = False
    stdout: bool = False

    # Streaming
    port: int = DEFAULT_PORT
    player: PlayerChoice = PlayerChoice.NONE
    omx_mode: str = DEFAULT_OMX_MODE
    subtitles: Path | None = None

    # Swarm
    blocklist: str | None = None

    debug: bool = False
    render_interval: float = RENDER_INTERVAL

    class Config:
        """Pydantic model configuration."""

        frozen = True
        str_strip_whitespace = True

    @field_validator("torrent_id")
    @classmethod
    def validate_torrent_id(cls, v: str) -> str:
        if not v:
            raise ValueError("A torrent identifier is required.")
        return v

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        if v < 1 or v > 65535:
            raise ValueError("Port must be between 1 and 65535.")
        return v

    @field_validator("index")
    @classmethod
    def validate_index(cls, v: int | None) -> int | None:
        if v is not None and v < 0:
            raise ValueError("File index cannot be negative.")
        return v

    @field_validator("render_interval")
    @classmethod
    def validate_interval(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Render interval must be positive.")
        return v

    @classmethod
    def from_options(
        cls,
        torrent_id: str,
        player_flags: dict[PlayerChoice, bool] | None = None,
        default_player: PlayerChoice = PlayerChoice.NONE,
        debug: bool = False,
        **options,
    ) -> "RunConfig":
        """
        Builds a RunConfig from raw command-line values.

        Player flags are resolved into a single PlayerChoice. Debug mode and
        stdout piping both force quiet output.

        Raises:
            ConfigurationError: If the options conflict or fail validation.
        """
        player = resolve_player(player_flags or {})
        if player is PlayerChoice.NONE:
            player = default_player

        if debug or options.get("stdout"):
            options["quiet"] = True

        options = {key: value for key, value in options.items() if value is not None}
        try:
            return cls(torrent_id=torrent_id, player=player, debug=debug, **options)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid options:\n{e}") from e
