"""
Read-only views and protocols for the collaborators the session core drives:
the swarm engine, its per-torrent handle, and the content server.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator, Protocol, Sequence

from .events import EventEmitter

# Event names emitted on SwarmHandle.events
WIRE = "wire"
METADATA = "metadata"
VERIFYING = "verifying"
DONE = "done"
ERROR = "error"
HOTSWAP = "hotswap"
BLOCKED = "blocked"

# Event names emitted on ContentServer.events
LISTENING = "listening"
CONNECTION = "connection"


@dataclass(frozen=True)
class TorrentFile:
    name: str
    path: str
    length: int


@dataclass(frozen=True)
class Wire:
    """One peer connection as last reported by the swarm engine."""

    remote_address: str
    peer_choking: bool
    downloaded: int
    uploaded: int
    download_speed: float
    upload_speed: float
    requests: tuple[int, ...] = ()
    peer_pieces: tuple[bool, ...] = ()


@dataclass(frozen=True)
class Piece:
    """A piece and the written state of each of its blocks."""

    index: int
    verified: bool
    blocks: tuple[bool, ...]

    @property
    def blocks_written(self) -> int:
        return sum(self.blocks)


class SwarmHandle(Protocol):
    """A single torrent inside the swarm engine."""

    events: EventEmitter

    @property
    def info_hash(self) -> str: ...

    @property
    def name(self) -> str: ...

    @property
    def has_metadata(self) -> bool: ...

    @property
    def length(self) -> int: ...

    @property
    def num_pieces(self) -> int: ...

    @property
    def files(self) -> Sequence[TorrentFile]: ...

    @property
    def wires(self) -> Sequence[Wire]: ...

    @property
    def pieces(self) -> Sequence[Piece]: ...

    @property
    def downloaded(self) -> int: ...

    @property
    def uploaded(self) -> int: ...

    @property
    def download_speed(self) -> float: ...

    @property
    def upload_speed(self) -> float: ...

    @property
    def num_peers(self) -> int: ...

    @property
    def num_queued(self) -> int: ...

    @property
    def num_blocked(self) -> int: ...

    def select_file(self, index: int) -> None: ...

    def iter_file(
        self, index: int, start: int = 0, end: int | None = None
    ) -> AsyncIterator[bytes]: ...


class SwarmEngine(Protocol):
    async def add(self, torrent_id: str, save_path: Path | None = None) -> SwarmHandle:
        """Adds a torrent. Raises InvalidIdentifierError if it cannot be resolved."""
        ...

    async def load_blocklist(self, source: str) -> int: ...

    async def destroy(self) -> None: ...


class ContentServer(Protocol):
    """Serves the torrent's files over HTTP."""

    events: EventEmitter

    @property
    def listening(self) -> bool: ...

    async def listen(self, port: int) -> None: ...

    async def close(self) -> None: ...
