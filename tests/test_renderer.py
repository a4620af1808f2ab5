"""Tests for torrentplay.cli.renderer."""

import asyncio
import logging
from unittest.mock import MagicMock

import pytest

from conftest import FakeHandle
from torrentplay.cli.renderer import (
    HeaderInfo,
    StatusRenderer,
    build_view,
    peer_row_budget,
)
from torrentplay.core.snapshot import TelemetrySnapshotter
from torrentplay.models.session import Session
from torrentplay.models.telemetry import PeerRow, PieceRow, TelemetrySnapshot

pytestmark = [pytest.mark.unit]

HEADER = HeaderInfo(player_name="VLC", server_url="http://192.168.1.2:8000/0")


def _snapshot(peers=0, pieces=0) -> TelemetrySnapshot:
    return TelemetrySnapshot(
        name="movie",
        download_speed=1024.0,
        upload_speed=0.0,
        downloaded=2048,
        uploaded=0,
        length=4096,
        estimated_seconds_remaining=2.0,
        estimate="a few seconds",
        runtime=3,
        pieces=tuple(PieceRow(i, (True, False, False)) for i in range(pieces)),
        peers=tuple(
            PeerRow(f"10.0.0.{i}:6881", "50%", 100, 10.0, 0.0, (), (1,))
            for i in range(peers)
        ),
        num_peers=peers,
        num_active=peers,
        num_queued=0,
        num_blocked=0,
        hotswaps=0,
    )


def _plain(view) -> list[str]:
    return [line.plain for line in view.lines]


class TestBuildView:
    def test_all_peers_fit(self):
        view = build_view(_snapshot(peers=5), HEADER, height=30)
        assert view.peers_shown == 5
        assert view.overflow == 0
        assert not any("more" in line for line in _plain(view))

    def test_overflow_row_appears_once(self):
        view = build_view(_snapshot(peers=25), HEADER, height=30)
        # 2 headers, blank, name, summary, timing, blank, blank after pieces
        fixed_rows = 8
        budget = 30 - fixed_rows - 4
        lines = _plain(view)

        assert view.peers_shown == min(25, budget)
        assert view.overflow == 25 - budget
        assert lines.count(f"... and {25 - budget} more") == 1
        assert len(lines) <= 30

    def test_budget_recomputed_from_height(self):
        tall = build_view(_snapshot(peers=25), HEADER, height=60)
        short = build_view(_snapshot(peers=25), HEADER, height=20)
        assert tall.peers_shown == 25
        assert short.peers_shown == 8

    def test_pieces_are_capped_to_fit(self):
        view = build_view(_snapshot(peers=3, pieces=40), HEADER, height=30)
        lines = _plain(view)
        assert view.peers_shown == 0
        assert view.overflow == 3
        assert len(lines) <= 30

    def test_headers_are_conditional(self):
        lines = _plain(build_view(_snapshot(), HeaderInfo(), height=30))
        assert not any(line.startswith("Streaming to") for line in lines)
        assert "downloading: movie" in lines

        lines = _plain(build_view(_snapshot(), HEADER, height=30))
        assert lines[0] == "Streaming to VLC"
        assert lines[1] == "server running at http://192.168.1.2:8000/0"

    def test_tiny_terminal_shows_no_peers(self):
        view = build_view(_snapshot(peers=2), HEADER, height=5)
        assert view.peers_shown == 0
        assert view.overflow == 2

    def test_peer_row_budget_never_negative(self):
        assert peer_row_budget(10, 20) == 0
        assert peer_row_budget(30, 8) == 18


class TestStatusRenderer:
    def _session(self):
        return Session(identifier="id", swarm=FakeHandle(has_metadata=True))

    @pytest.mark.asyncio
    async def test_quiet_never_starts(self, console):
        renderer = StatusRenderer(console, TelemetrySnapshotter(), quiet=True)
        renderer.start(self._session(), HEADER)
        renderer.notice("fetching torrent metadata from 3 peers")
        assert not renderer.running
        assert console.file.getvalue() == ""

    @pytest.mark.asyncio
    async def test_renders_until_stopped(self, console):
        renderer = StatusRenderer(console, TelemetrySnapshotter(), interval=0.01)
        renderer.start(self._session(), HEADER)
        assert renderer.running
        await asyncio.sleep(0.05)

        renderer.stop()
        renderer.stop()

        assert not renderer.running
        assert "downloading:" in console.file.getvalue()

    @pytest.mark.asyncio
    async def test_start_twice_keeps_one_loop(self, console):
        renderer = StatusRenderer(console, TelemetrySnapshotter(), interval=0.01)
        renderer.start(self._session(), HEADER)
        task = renderer._task
        renderer.start(self._session(), HEADER)
        assert renderer._task is task
        renderer.stop()

    def test_notice_only_before_rendering(self, console):
        renderer = StatusRenderer(console, TelemetrySnapshotter())
        renderer.notice("fetching torrent metadata from 3 peers")
        assert "fetching torrent metadata from 3 peers" in console.file.getvalue()

    def test_stop_without_start(self, console):
        renderer = StatusRenderer(console, TelemetrySnapshotter())
        renderer.stop()
        assert not renderer.running

    @pytest.mark.asyncio
    async def test_render_failure_is_logged_and_stops(self, console, caplog):
        snapshotter = MagicMock()
        snapshotter.snapshot.side_effect = ZeroDivisionError("no pieces")
        renderer = StatusRenderer(console, snapshotter, interval=0.01)

        with caplog.at_level(logging.ERROR):
            renderer.start(self._session(), HEADER)
            await asyncio.sleep(0.05)

        assert not renderer.running
        assert "Status rendering failed" in caplog.text
        assert "no pieces" in caplog.text
