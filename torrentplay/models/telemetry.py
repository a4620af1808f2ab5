"""
Immutable value objects describing swarm telemetry at one point in time.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class PieceRow:
    """An in-progress piece and which of its blocks are written."""

    index: int
    blocks: tuple[bool, ...]


@dataclass(frozen=True)
class PeerRow:
    address: str
    progress: str
    downloaded: int
    download_speed: float
    upload_speed: float
    tags: tuple[str, ...]
    requests: tuple[int, ...]


@dataclass(frozen=True)
class TelemetrySnapshot:
    """Everything the status view needs for one render tick."""

    name: str
    download_speed: float
    upload_speed: float
    downloaded: int
    uploaded: int
    length: int
    estimated_seconds_remaining: float
    estimate: str
    runtime: int
    pieces: tuple[PieceRow, ...]
    peers: tuple[PeerRow, ...]
    num_peers: int
    num_active: int
    num_queued: int
    num_blocked: int
    hotswaps: int
