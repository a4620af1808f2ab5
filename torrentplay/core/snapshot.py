"""
Builds immutable telemetry snapshots from the live swarm state.
"""

import time
from typing import Callable, Sequence

from torrentplay.engine.base import Piece, Wire
from torrentplay.models.session import Session
from torrentplay.models.telemetry import PeerRow, PieceRow, TelemetrySnapshot
from torrentplay.utils.formatting import humanize_duration

SEED_MARKER = "S"
UNKNOWN_PROGRESS = "?"


def estimate_seconds_remaining(length: int, downloaded: int, speed: float) -> float:
    """
    Seconds left at the current speed. With no speed the divisor is -1, so the
    estimate goes negative rather than infinite.
    """
    return max(0, length - downloaded) / (speed if speed > 0 else -1)


def peer_progress(peer_pieces: Sequence[bool], piece_count: int) -> str:
    """Percentage of pieces a peer has, rounded down, or SEED_MARKER if it has all."""
    if piece_count <= 0:
        return UNKNOWN_PROGRESS
    bits = sum(1 for i in range(min(piece_count, len(peer_pieces))) if peer_pieces[i])
    if bits == piece_count:
        return SEED_MARKER
    return f"{100 * bits // piece_count}%"


def is_active(wire: Wire) -> bool:
    return not wire.peer_choking


def is_in_progress(piece: Piece) -> bool:
    return piece.blocks_written > 0 and not piece.verified


def _peer_row(wire: Wire, piece_count: int) -> PeerRow:
    tags = ("choked",) if wire.peer_choking else ()
    return PeerRow(
        address=wire.remote_address,
        progress=peer_progress(wire.peer_pieces, piece_count),
        downloaded=wire.downloaded,
        download_speed=wire.download_speed,
        upload_speed=wire.upload_speed,
        tags=tags,
        requests=tuple(wire.requests),
    )


class TelemetrySnapshotter:
    """Reads the swarm without mutating it; safe to call any number of times per tick."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock

    def snapshot(self, session: Session) -> TelemetrySnapshot:
        swarm = session.swarm
        wires = list(swarm.wires)
        piece_count = swarm.num_pieces if swarm.has_metadata else 0
        speed = swarm.download_speed
        remaining = estimate_seconds_remaining(swarm.length, swarm.downloaded, speed)

        pieces = tuple(
            PieceRow(index=piece.index, blocks=tuple(piece.blocks))
            for piece in swarm.pieces
            if is_in_progress(piece)
        )
        # Most recently connected peers first.
        peers = tuple(_peer_row(wire, piece_count) for wire in reversed(wires))

        return TelemetrySnapshot(
            name=swarm.name,
            download_speed=speed,
            upload_speed=swarm.upload_speed,
            downloaded=swarm.downloaded,
            uploaded=swarm.uploaded,
            length=swarm.length,
            estimated_seconds_remaining=remaining,
            estimate=humanize_duration(remaining),
            runtime=session.runtime(self._clock()),
            pieces=pieces,
            peers=peers,
            num_peers=len(wires),
            num_active=sum(1 for wire in wires if is_active(wire)),
            num_queued=swarm.num_queued,
            num_blocked=swarm.num_blocked,
            hotswaps=session.hotswaps,
        )
