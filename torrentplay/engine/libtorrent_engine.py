"""
Swarm engine backed by libtorrent.

A single alert pump task polls the libtorrent session and re-emits what the
session core cares about as events on each torrent's EventEmitter. Peer and
piece views are rebuilt from libtorrent on every access, never cached.
"""

import asyncio
import logging
import tempfile
from pathlib import Path
from typing import AsyncIterator

import aiofiles
import libtorrent as lt

from torrentplay import __version__
from torrentplay.exceptions import SwarmError

from . import base
from .base import Piece, TorrentFile, Wire
from .blocklist import load_blocklist
from .codec import resolve_add_params
from .events import EventEmitter

log = logging.getLogger(__name__)

ALERT_POLL_INTERVAL = 0.25
PIECE_POLL_INTERVAL = 0.2
READ_AHEAD_PIECES = 4

# libtorrent block_info::block_state_t
BLOCK_FINISHED = 3

TOP_PRIORITY = 7


def default_download_dir() -> Path:
    return Path(tempfile.gettempdir()) / "torrentplay"


class LibtorrentHandle:
    """A torrent inside a libtorrent session, viewed through the SwarmHandle protocol."""

    def __init__(self, handle: "lt.torrent_handle", save_path: Path):
        self.events = EventEmitter()
        self._handle = handle
        self._save_path = save_path
        self._metadata_announced = False
        self._done_announced = False
        self._blocked = 0

    @property
    def info_hash(self) -> str:
        return str(self._handle.info_hashes().v1)

    @property
    def _info(self) -> "lt.torrent_info | None":
        return self._handle.torrent_file()

    @property
    def name(self) -> str:
        return self._handle.status().name

    @property
    def has_metadata(self) -> bool:
        return self._handle.status().has_metadata

    @property
    def length(self) -> int:
        info = self._info
        return info.total_size() if info else 0

    @property
    def num_pieces(self) -> int:
        info = self._info
        return info.num_pieces() if info else 0

    @property
    def files(self) -> list[TorrentFile]:
        info = self._info
        if info is None:
            return []
        storage = info.files()
        return [
            TorrentFile(
                name=Path(storage.file_path(i)).name,
                path=storage.file_path(i),
                length=storage.file_size(i),
            )
            for i in range(storage.num_files())
        ]

    @property
    def wires(self) -> list[Wire]:
        return [self._wire(peer) for peer in self._handle.get_peer_info()]

    @staticmethod
    def _wire(peer) -> Wire:
        host, port = peer.ip
        requests = ()
        if peer.downloading_piece_index >= 0:
            requests = (peer.downloading_piece_index,)
        return Wire(
            remote_address=f"{host}:{port}",
            peer_choking=bool(peer.flags & lt.peer_info.remote_choked),
            downloaded=peer.total_download,
            uploaded=peer.total_upload,
            download_speed=peer.down_speed,
            upload_speed=peer.up_speed,
            requests=requests,
            peer_pieces=tuple(bool(bit) for bit in peer.pieces),
        )

    @property
    def pieces(self) -> list[Piece]:
        """Pieces libtorrent is currently working on, with per-block state."""
        pieces = []
        for entry in self._handle.get_download_queue():
            index = entry["piece_index"]
            pieces.append(
                Piece(
                    index=index,
                    verified=self._handle.have_piece(index),
                    blocks=tuple(
                        block["state"] == BLOCK_FINISHED for block in entry["blocks"]
                    ),
                )
            )
        return sorted(pieces, key=lambda piece: piece.index)

    @property
    def downloaded(self) -> int:
        return self._handle.status().total_payload_download

    @property
    def uploaded(self) -> int:
        return self._handle.status().total_payload_upload

    @property
    def download_speed(self) -> float:
        return float(self._handle.status().download_payload_rate)

    @property
    def upload_speed(self) -> float:
        return float(self._handle.status().upload_payload_rate)

    @property
    def num_peers(self) -> int:
        return self._handle.status().num_peers

    @property
    def num_queued(self) -> int:
        status = self._handle.status()
        return max(0, status.list_peers - status.num_peers)

    @property
    def num_blocked(self) -> int:
        return self._blocked

    def select_file(self, index: int) -> None:
        self._handle.file_priority(index, TOP_PRIORITY)
        log.debug(f"File {index} prioritised.")

    async def _wait_for_piece(self, piece: int) -> None:
        if self._handle.have_piece(piece):
            return
        for offset in range(READ_AHEAD_PIECES):
            if piece + offset < self.num_pieces:
                self._handle.set_piece_deadline(piece + offset, offset * 1000)
        while not self._handle.have_piece(piece):
            await asyncio.sleep(PIECE_POLL_INTERVAL)

    async def iter_file(
        self, index: int, start: int = 0, end: int | None = None
    ) -> AsyncIterator[bytes]:
        """
        Yields the bytes of file `index` from `start` up to (excluding) `end`,
        waiting for each piece to be downloaded and verified before reading it.
        """
        info = self._info
        if info is None:
            raise SwarmError("Torrent metadata is not available yet.")
        storage = info.files()
        size = storage.file_size(index)
        end = size if end is None else min(end, size)
        path = self._save_path / storage.file_path(index)

        offset = start
        handle = None
        try:
            while offset < end:
                request = info.map_file(index, offset, 1)
                chunk = min(end - offset, info.piece_size(request.piece) - request.start)
                await self._wait_for_piece(request.piece)
                if handle is None:
                    handle = await aiofiles.open(path, "rb")
                await handle.seek(offset)
                data = await handle.read(chunk)
                if not data:
                    raise SwarmError(f"Unexpected end of file while reading {path}")
                offset += len(data)
                yield data
        finally:
            if handle is not None:
                await handle.close()

    def _announce_metadata(self) -> None:
        if self._metadata_announced:
            return
        self._metadata_announced = True
        self.events.emit(base.METADATA)

    def _announce_done(self) -> None:
        if self._done_announced:
            return
        self._done_announced = True
        self.events.emit(base.DONE)

    def _poll(self) -> None:
        """Emits state that libtorrent exposes through status rather than alerts."""
        status = self._handle.status()
        if status.has_metadata:
            self._announce_metadata()
        if status.state == lt.torrent_status.checking_files:
            num_pieces = self.num_pieces
            self.events.emit(
                base.VERIFYING,
                {
                    "percent_done": status.progress * 100,
                    "percent_verified": (
                        100 * status.num_pieces / num_pieces if num_pieces else 0
                    ),
                },
            )

    def _on_alert(self, alert) -> None:
        if isinstance(alert, lt.peer_connect_alert):
            self.events.emit(base.WIRE)
        elif isinstance(alert, lt.peer_blocked_alert):
            self._blocked += 1
            self.events.emit(base.BLOCKED)
        elif isinstance(alert, lt.metadata_received_alert):
            self._announce_metadata()
        elif isinstance(alert, lt.torrent_finished_alert):
            self._announce_done()
        elif isinstance(alert, lt.torrent_error_alert):
            self.events.emit(base.ERROR, SwarmError(alert.message()))


class LibtorrentEngine:
    """Owns the libtorrent session and the alert pump."""

    def __init__(self, listen_port: int = 6881):
        self._session = lt.session(
            {
                "listen_interfaces": f"0.0.0.0:{listen_port},[::]:{listen_port}",
                "alert_mask": lt.alert.category_t.all_categories,
                "user_agent": f"torrentplay/{__version__}",
            }
        )
        self._handles: dict[str, LibtorrentHandle] = {}
        self._pump: asyncio.Task | None = None

    async def add(self, torrent_id: str, save_path: Path | None = None) -> LibtorrentHandle:
        """
        Adds a torrent to the session.

        Raises:
            InvalidIdentifierError: If the identifier cannot be resolved.
        """
        params = await resolve_add_params(torrent_id)
        target = Path(save_path) if save_path else default_download_dir()
        target.mkdir(parents=True, exist_ok=True)
        params.save_path = str(target)

        handle = LibtorrentHandle(self._session.add_torrent(params), target)
        self._handles[handle.info_hash] = handle
        log.debug(f"Added torrent {handle.info_hash} saving to '{target}'.")

        if self._pump is None:
            self._pump = asyncio.create_task(self._pump_alerts())
        return handle

    async def load_blocklist(self, source: str) -> int:
        ranges = await load_blocklist(source)
        ip_filter = lt.ip_filter()
        for first, last in ranges:
            ip_filter.add_rule(first, last, 1)
        self._session.set_ip_filter(ip_filter)
        return len(ranges)

    async def destroy(self) -> None:
        if self._pump is not None:
            self._pump.cancel()
            try:
                await self._pump
            except asyncio.CancelledError:
                pass
            self._pump = None
        for handle in self._handles.values():
            self._session.remove_torrent(handle._handle)
        self._handles.clear()
        self._session.pause()
        log.debug("libtorrent session stopped.")

    def _handle_for(self, alert) -> LibtorrentHandle | None:
        torrent = getattr(alert, "handle", None)
        if torrent is None or not torrent.is_valid():
            return None
        return self._handles.get(str(torrent.info_hashes().v1))

    async def _pump_alerts(self) -> None:
        while True:
            for alert in self._session.pop_alerts():
                handle = self._handle_for(alert)
                if handle is not None:
                    handle._on_alert(alert)
                elif isinstance(alert, lt.listen_failed_alert):
                    log.warning(f"[yellow]{alert.message()}[/yellow]")
                else:
                    log.debug(alert.message())
            for handle in list(self._handles.values()):
                handle._poll()
            await asyncio.sleep(ALERT_POLL_INTERVAL)
