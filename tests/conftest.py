"""Pytest configuration and in-memory collaborators for torrentplay tests."""

import asyncio
from io import StringIO

import pytest
from rich.console import Console

from torrentplay.engine import base
from torrentplay.engine.base import Piece, TorrentFile, Wire
from torrentplay.engine.events import EventEmitter
from torrentplay.exceptions import InvalidIdentifierError, PlayerNotFoundError


def pytest_configure(config):
    """Register project markers when the ini file isn't loaded."""
    for name, desc in [
        ("unit", "marks tests as unit tests"),
        ("cli", "marks tests as CLI tests"),
    ]:
        config.addinivalue_line("markers", f"{name}: {desc}")


class FakeHandle:
    """A swarm handle whose state tests set directly."""

    def __init__(self, files=None, has_metadata=False, data=b""):
        self.events = EventEmitter()
        self.info_hash = "c9e15763f722f23e98a29decdfae341b98d53056"
        self.name = "Big Buck Bunny"
        self.has_metadata = has_metadata
        self.files = files or [TorrentFile("movie.mp4", "movie.mp4", 1000)]
        self.wires: list[Wire] = []
        self.pieces: list[Piece] = []
        self.num_pieces = 10
        self.downloaded = 0
        self.uploaded = 0
        self.download_speed = 0.0
        self.upload_speed = 0.0
        self.num_queued = 0
        self.num_blocked = 0
        self.selected: list[int] = []
        self.data = data

    @property
    def length(self) -> int:
        return sum(f.length for f in self.files)

    @property
    def num_peers(self) -> int:
        return len(self.wires)

    def select_file(self, index: int) -> None:
        self.selected.append(index)

    async def iter_file(self, index, start=0, end=None):
        data = self.data[start:end]
        for i in range(0, len(data), 4):
            yield data[i : i + 4]


class FakeEngine:
    def __init__(self, handle=None):
        self.handle = handle or FakeHandle()
        self.added: list[str] = []
        self.destroyed = 0
        self.blocklists: list[str] = []

    async def add(self, torrent_id, save_path=None):
        if torrent_id == "not-a-torrent":
            raise InvalidIdentifierError(f"Invalid torrent identifier: {torrent_id}")
        self.added.append(torrent_id)
        return self.handle

    async def load_blocklist(self, source):
        self.blocklists.append(source)
        return 3

    async def destroy(self):
        self.destroyed += 1


class FakeServer:
    def __init__(self, swarm, announce=True):
        self.swarm = swarm
        self.events = EventEmitter()
        self.listening = False
        self.port = None
        self.closed = 0
        self.announce = announce

    async def listen(self, port):
        self.port = port
        self.listening = True
        if self.announce:
            self.events.emit(base.LISTENING, port)

    async def close(self):
        self.closed += 1
        self.listening = False


class FakeLocator:
    def __init__(self, missing=()):
        self.missing = set(missing)

    def locate(self, executable):
        if executable in self.missing:
            raise PlayerNotFoundError(f"Could not find '{executable}'. Is it installed?")
        return f"/usr/bin/{executable}"


async def drain(rounds: int = 10) -> None:
    """Lets queued callbacks and the session dispatcher run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def handle():
    return FakeHandle()


@pytest.fixture
def engine(handle):
    return FakeEngine(handle)


@pytest.fixture
def console():
    return Console(file=StringIO(), width=120, height=30, force_terminal=False)
