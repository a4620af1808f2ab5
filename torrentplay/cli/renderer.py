"""
Renders the live status view: headers, transfer summary, in-progress pieces
and the peer table, redrawn on a fixed interval with a Rich Live display.
"""

import asyncio
import logging
from dataclasses import dataclass

from rich.console import Console, Group
from rich.live import Live
from rich.text import Text

from torrentplay.core.snapshot import TelemetrySnapshotter
from torrentplay.models.config import RENDER_INTERVAL
from torrentplay.models.session import Session
from torrentplay.models.telemetry import PeerRow, PieceRow, TelemetrySnapshot
from torrentplay.utils.formatting import format_size, format_speed

log = logging.getLogger(__name__)

# Rows kept free below the peer table: separator, overflow line, separator, cursor.
PEER_TABLE_MARGIN = 4
BLOCK = "█"


@dataclass(frozen=True)
class HeaderInfo:
    player_name: str | None = None
    server_url: str | None = None
    out: str | None = None


@dataclass(frozen=True)
class StatusView:
    lines: tuple[Text, ...]
    peers_shown: int
    overflow: int


def peer_row_budget(height: int, used_rows: int) -> int:
    """Peer rows that fit below `used_rows` on a terminal `height` rows tall."""
    return max(0, height - used_rows - PEER_TABLE_MARGIN)


def _line(*parts) -> Text:
    return Text.assemble(*parts, no_wrap=True, overflow="crop")


def _blank() -> Text:
    return Text("")


def _piece_line(piece: PieceRow) -> Text:
    blocks = [(BLOCK, "green" if written else "red") for written in piece.blocks]
    return _line((f"{piece.index:<4}", "cyan"), " ", *blocks)


def _peer_line(peer: PeerRow) -> Text:
    return _line(
        f"{peer.progress:<3} ",
        (f"{peer.address:<25}", "magenta"),
        " ",
        f"{format_size(peer.downloaded):<10}",
        " ",
        (f"{format_speed(peer.download_speed):<10}", "cyan"),
        " ",
        (f"{format_speed(peer.upload_speed):<10}", "red"),
        " ",
        (f"{', '.join(peer.tags):<15}", "grey50"),
        (f"{' '.join(str(piece) for piece in peer.requests):<15}", "cyan"),
    )


def build_view(snapshot: TelemetrySnapshot, header: HeaderInfo, height: int) -> StatusView:
    """Lays out one frame so that it never needs more than `height` rows."""
    lines: list[Text] = []
    if header.player_name:
        lines.append(_line(("Streaming to ", "green"), (header.player_name, "bold")))
    if header.server_url:
        lines.append(_line(("server running at ", "green"), (header.server_url, "bold")))
    if header.out:
        lines.append(_line(("downloading to ", "green"), (header.out, "bold")))

    lines.append(_blank())
    lines.append(_line(("downloading: ", "green"), (snapshot.name, "bold")))
    lines.append(
        _line(
            ("speed: ", "green"),
            (format_speed(snapshot.download_speed), "bold"),
            "  ",
            ("downloaded: ", "green"),
            (format_size(snapshot.downloaded), "bold"),
            "/",
            (format_size(snapshot.length), "bold"),
            "  ",
            ("uploaded: ", "green"),
            (format_size(snapshot.uploaded), "bold"),
            "  ",
            ("peers: ", "green"),
            (f"{snapshot.num_active}/{snapshot.num_peers}", "bold"),
            "  ",
            ("hotswaps: ", "green"),
            (str(snapshot.hotswaps), "bold"),
        )
    )
    lines.append(
        _line(
            ("time remaining: ", "green"),
            (f"{snapshot.estimate} remaining", "bold"),
            "  ",
            ("total time: ", "green"),
            (f"{snapshot.runtime}s", "bold"),
            "  ",
            ("queued peers: ", "green"),
            (str(snapshot.num_queued), "bold"),
            "  ",
            ("blocked: ", "green"),
            (str(snapshot.num_blocked), "bold"),
        )
    )
    lines.append(_blank())

    piece_budget = max(0, height - len(lines) - 1 - PEER_TABLE_MARGIN)
    for piece in snapshot.pieces[:piece_budget]:
        lines.append(_piece_line(piece))
    lines.append(_blank())

    budget = peer_row_budget(height, len(lines))
    shown = snapshot.peers[:budget]
    for peer in shown:
        lines.append(_peer_line(peer))

    overflow = len(snapshot.peers) - len(shown)
    if overflow > 0:
        lines.append(_blank())
        lines.append(_line(f"... and {overflow} more"))
    lines.append(_blank())

    return StatusView(lines=tuple(lines), peers_shown=len(shown), overflow=overflow)


class StatusRenderer:
    """Owns the render loop. `stop()` may be called any number of times."""

    def __init__(
        self,
        console: Console,
        snapshotter: TelemetrySnapshotter,
        quiet: bool = False,
        interval: float = RENDER_INTERVAL,
    ):
        self.console = console
        self.snapshotter = snapshotter
        self.quiet = quiet
        self.interval = interval
        self._session: Session | None = None
        self._header = HeaderInfo()
        self._live: Live | None = None
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None

    def start(self, session: Session, header: HeaderInfo) -> None:
        if self.quiet or self.running:
            return
        self._session = session
        self._header = header
        self.console.clear()
        self._live = Live(
            console=self.console,
            auto_refresh=False,
            redirect_stdout=False,
            redirect_stderr=False,
        )
        self._live.start()
        self._task = asyncio.create_task(self._run())
        self._task.add_done_callback(self._render_done)

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None
        if self._live is not None:
            self._live.stop()
            self._live = None

    def notice(self, message: str) -> None:
        """Replaces the screen with a single status line until rendering starts."""
        if self.quiet or self.running:
            return
        self.console.clear()
        self.console.print(message)

    def render_once(self) -> StatusView:
        snapshot = self.snapshotter.snapshot(self._session)
        view = build_view(snapshot, self._header, self.console.size.height)
        if self._live is not None:
            self._live.update(Group(*view.lines), refresh=True)
        return view

    def _render_done(self, task: asyncio.Task) -> None:
        if task.cancelled() or task.exception() is None:
            return
        log.error("Status rendering failed", exc_info=task.exception())
        if self._task is task:
            self.stop()

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        next_tick = loop.time()
        while True:
            self.render_once()
            next_tick += self.interval
            now = loop.time()
            if next_tick <= now:
                # Skip missed ticks instead of bursting to catch up.
                next_tick += ((now - next_tick) // self.interval + 1) * self.interval
            await asyncio.sleep(next_tick - now)
