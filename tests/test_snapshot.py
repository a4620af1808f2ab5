"""Tests for torrentplay.core.snapshot."""

import pytest

from conftest import FakeHandle
from torrentplay.core.snapshot import (
    SEED_MARKER,
    TelemetrySnapshotter,
    estimate_seconds_remaining,
    is_active,
    peer_progress,
)
from torrentplay.engine.base import Piece, TorrentFile, Wire
from torrentplay.models.session import Session

pytestmark = [pytest.mark.unit]


def _wire(address="10.0.0.1:6881", choking=False, pieces=(), downloaded=0):
    return Wire(
        remote_address=address,
        peer_choking=choking,
        downloaded=downloaded,
        uploaded=0,
        download_speed=100.0,
        upload_speed=10.0,
        requests=(3, 4),
        peer_pieces=tuple(pieces),
    )


def _session(handle: FakeHandle) -> Session:
    return Session(identifier="id", started_at=100.0, swarm=handle)


class TestEstimate:
    def test_positive_speed_gives_seconds_left(self):
        assert estimate_seconds_remaining(1000, 400, 100) == 6

    def test_complete_download_is_zero(self):
        assert estimate_seconds_remaining(1000, 1200, 50) == 0

    def test_zero_speed_goes_negative(self):
        assert estimate_seconds_remaining(1000, 400, 0) == -600

    def test_negative_speed_uses_minus_one_divisor(self):
        assert estimate_seconds_remaining(1000, 0, -5) == -1000

    @pytest.mark.parametrize("speed", [0.5, 1, 250, 10_000])
    def test_never_negative_with_positive_speed(self, speed):
        assert estimate_seconds_remaining(5000, 1234, speed) >= 0


class TestPeerProgress:
    def test_rounds_down(self):
        assert peer_progress([True, True, False], 3) == "66%"

    def test_all_pieces_is_seed_marker(self):
        assert peer_progress([True] * 4, 4) == SEED_MARKER

    def test_no_pieces(self):
        assert peer_progress([False] * 4, 4) == "0%"

    def test_unknown_piece_count(self):
        assert peer_progress([], 0) == "?"

    def test_short_bitfield_counts_only_known_bits(self):
        assert peer_progress([True], 8) == "12%"


class TestSnapshotter:
    def test_only_partial_unverified_pieces_are_shown(self):
        handle = FakeHandle(has_metadata=True)
        handle.pieces = [
            Piece(0, verified=False, blocks=(True, False)),
            Piece(1, verified=True, blocks=(True, True)),
            Piece(2, verified=False, blocks=(False, False)),
        ]
        snapshot = TelemetrySnapshotter(clock=lambda: 105.0).snapshot(_session(handle))

        assert [piece.index for piece in snapshot.pieces] == [0]
        assert snapshot.pieces[0].blocks == (True, False)

    def test_verified_piece_leaves_the_bar(self):
        handle = FakeHandle(has_metadata=True)
        handle.pieces = [Piece(0, verified=False, blocks=(True, False))]
        snapshotter = TelemetrySnapshotter(clock=lambda: 100.0)
        assert len(snapshotter.snapshot(_session(handle)).pieces) == 1

        handle.pieces = [Piece(0, verified=True, blocks=(True, True))]
        assert snapshotter.snapshot(_session(handle)).pieces == ()

    def test_peers_newest_first_with_counts(self):
        handle = FakeHandle(has_metadata=True)
        handle.num_pieces = 2
        handle.wires = [
            _wire("a:1", choking=True, pieces=(True, False)),
            _wire("b:2", choking=False, pieces=(True, True)),
        ]
        snapshot = TelemetrySnapshotter(clock=lambda: 112.7).snapshot(_session(handle))

        assert [peer.address for peer in snapshot.peers] == ["b:2", "a:1"]
        assert snapshot.peers[0].progress == SEED_MARKER
        assert snapshot.peers[1].progress == "50%"
        assert snapshot.peers[1].tags == ("choked",)
        assert snapshot.num_peers == 2
        assert snapshot.num_active == 1
        assert snapshot.runtime == 12

    def test_without_metadata_progress_is_unknown(self):
        handle = FakeHandle(has_metadata=False)
        handle.wires = [_wire(pieces=(True,))]
        snapshot = TelemetrySnapshotter().snapshot(_session(handle))
        assert snapshot.peers[0].progress == "?"

    def test_snapshot_has_no_side_effects(self):
        handle = FakeHandle(files=[TorrentFile("a", "a", 2000)], has_metadata=True)
        handle.wires = [_wire()]
        handle.downloaded = 500
        handle.download_speed = 0.0
        session = _session(handle)
        snapshotter = TelemetrySnapshotter(clock=lambda: 100.0)

        first = snapshotter.snapshot(session)
        second = snapshotter.snapshot(session)

        assert first == second
        assert first.estimated_seconds_remaining == -1500
        assert len(handle.wires) == 1
        assert session.hotswaps == 0

    def test_active_predicate(self):
        assert is_active(_wire(choking=False))
        assert not is_active(_wire(choking=True))
