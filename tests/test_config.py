"""Tests for torrentplay.models.config and torrentplay.storage.config_manager."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from torrentplay.exceptions import ConfigurationError
from torrentplay.models.config import (
    PlayerChoice,
    PlayerKind,
    RunConfig,
    resolve_player,
)
from torrentplay.storage.config_manager import ConfigManager

pytestmark = [pytest.mark.unit]


class TestResolvePlayer:
    def test_no_flags(self):
        assert resolve_player({}) is PlayerChoice.NONE

    def test_single_flag(self):
        assert resolve_player({PlayerChoice.MPV: True, PlayerChoice.VLC: False}) is PlayerChoice.MPV

    def test_more_than_one_is_rejected(self):
        with pytest.raises(ConfigurationError, match="--airplay, --vlc"):
            resolve_player({PlayerChoice.VLC: True, PlayerChoice.AIRPLAY: True})

    def test_kinds(self):
        assert PlayerChoice.CHROMECAST.kind is PlayerKind.CAST
        assert PlayerChoice.OMX.kind is PlayerKind.LOCAL
        assert PlayerChoice.NONE.kind is PlayerKind.NONE
        assert PlayerChoice.MPLAYER.display_name == "MPlayer"


class TestRunConfig:
    def test_defaults(self):
        config = RunConfig.from_options("magnet:?xt=urn:btih:abc")
        assert config.port == 8000
        assert config.player is PlayerChoice.NONE
        assert config.omx_mode == "hdmi"
        assert config.render_interval == 0.5
        assert not config.quiet

    def test_is_immutable(self):
        config = RunConfig.from_options("magnet:?xt=urn:btih:abc")
        with pytest.raises(ValidationError):
            config.port = 9000

    def test_stdout_and_debug_force_quiet(self):
        assert RunConfig.from_options("x", stdout=True).quiet
        assert RunConfig.from_options("x", debug=True).quiet

    def test_flag_beats_default_player(self):
        config = RunConfig.from_options(
            "x", player_flags={PlayerChoice.MPV: True}, default_player=PlayerChoice.VLC
        )
        assert config.player is PlayerChoice.MPV

    def test_default_player_used_without_flags(self):
        config = RunConfig.from_options("x", default_player=PlayerChoice.VLC)
        assert config.player is PlayerChoice.VLC

    def test_none_values_are_dropped(self):
        config = RunConfig.from_options("x", port=None, index=None)
        assert config.port == 8000
        assert config.index is None

    @pytest.mark.parametrize(
        "options",
        [{"port": 0}, {"port": 70000}, {"index": -1}, {"render_interval": 0}],
    )
    def test_invalid_values(self, options):
        with pytest.raises(ConfigurationError):
            RunConfig.from_options("x", **options)

    def test_empty_identifier(self):
        with pytest.raises(ConfigurationError):
            RunConfig.from_options("   ")


class TestConfigManager:
    def test_missing_file_means_no_defaults(self, tmp_path):
        assert ConfigManager(tmp_path / "config.ini").load_defaults() == {}

    def test_reads_typed_defaults(self, tmp_path):
        path = tmp_path / "config.ini"
        path.write_text(
            "[DEFAULT]\nport = 9000\nquiet = yes\nplayer = mpv\nout = ~/Videos\n"
            "blocklist = https://example.org/level1.gz\n"
        )
        defaults = ConfigManager(path).load_defaults()
        assert defaults["port"] == 9000
        assert defaults["quiet"] is True
        assert defaults["player"] is PlayerChoice.MPV
        assert defaults["out"] == Path("~/Videos").expanduser()
        assert defaults["blocklist"] == "https://example.org/level1.gz"

    def test_unknown_player(self, tmp_path):
        path = tmp_path / "config.ini"
        path.write_text("[DEFAULT]\nplayer = winamp\n")
        with pytest.raises(ConfigurationError, match="winamp"):
            ConfigManager(path).load_defaults()

    def test_invalid_port(self, tmp_path):
        path = tmp_path / "config.ini"
        path.write_text("[DEFAULT]\nport = eighty\n")
        with pytest.raises(ConfigurationError):
            ConfigManager(path).load_defaults()

    def test_unparsable_file(self, tmp_path):
        path = tmp_path / "config.ini"
        path.write_text("port = 9000\n")
        with pytest.raises(ConfigurationError):
            ConfigManager(path).load_defaults()

    def test_describe(self, tmp_path):
        described = ConfigManager(tmp_path / "missing.ini").describe()
        assert described["port"] == "8000"
        assert described["player"] == "none"
        assert described["quiet"] == "false"
