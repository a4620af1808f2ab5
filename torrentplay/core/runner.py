"""
Wires one run together: swarm engine, session controller, status renderer,
player orchestrator and shutdown handling, and waits for the exit decision.
"""

import asyncio
import logging
import sys
from typing import BinaryIO, Callable

from rich.console import Console

from torrentplay.cli.formatters import print_file_list
from torrentplay.cli.renderer import HeaderInfo, StatusRenderer
from torrentplay.engine.base import ContentServer, SwarmEngine, SwarmHandle
from torrentplay.engine.events import Subscription
from torrentplay.exceptions import TorrentPlayError
from torrentplay.models.config import PlayerChoice, RunConfig
from torrentplay.models.session import Session
from torrentplay.player.casters import DeviceCaster
from torrentplay.player.locator import PlayerLocator
from torrentplay.player.orchestrator import PlayerOrchestrator, select_file_index

from . import session_controller as lifecycle
from .exit import ExitGate, FatalErrorReporter
from .session_controller import SessionController
from .shutdown import ShutdownSequencer
from .snapshot import TelemetrySnapshotter

log = logging.getLogger(__name__)


class SessionRunner:
    """Runs a single download session to its exit code."""

    def __init__(
        self,
        config: RunConfig,
        engine: SwarmEngine,
        console: Console,
        server_factory: Callable[[SwarmHandle], ContentServer] | None = None,
        locator: PlayerLocator | None = None,
        casters: dict[PlayerChoice, type[DeviceCaster]] | None = None,
        snapshotter: TelemetrySnapshotter | None = None,
        stdout: BinaryIO | None = None,
    ):
        self.config = config
        self.engine = engine
        self.console = console
        self.stdout = stdout
        self.gate = ExitGate()
        self.report_fatal = FatalErrorReporter(console, self.gate)
        self.controller = SessionController(
            config, engine, self.gate, self.report_fatal, server_factory=server_factory
        )
        self.renderer = StatusRenderer(
            console,
            snapshotter or TelemetrySnapshotter(),
            quiet=config.quiet,
            interval=config.render_interval,
        )
        self.orchestrator = PlayerOrchestrator(
            config,
            on_complete=self.controller.decide_exit,
            on_fatal=self.report_fatal,
            locator=locator,
            casters=casters,
        )
        self.shutdown = ShutdownSequencer(self.controller, self.renderer, self.gate, console)
        self._subscriptions: list[Subscription] = []
        self._fetching: Subscription | None = None
        self._tasks: set[asyncio.Task] = set()

    async def run(self) -> int:
        # With a fixed output path the download runs to completion instead.
        if self.config.out is None:
            self.shutdown.install()

        events = self.controller.events
        if not self.config.list_files:
            self._fetching = events.on(lifecycle.FETCHING, self._on_fetching)
        self._subscriptions += [
            events.on(lifecycle.METADATA, self._on_metadata),
            events.on(lifecycle.VERIFYING, self._on_verifying),
            events.on(lifecycle.READY, self._on_ready),
            events.on(lifecycle.DONE, self._on_done),
        ]

        try:
            if self.config.blocklist:
                await self.engine.load_blocklist(self.config.blocklist)
            await self.controller.start()
        except TorrentPlayError as e:
            self.report_fatal(e)

        code = await self.gate.wait()
        await self._cleanup()
        return code

    async def _cleanup(self) -> None:
        self.shutdown.uninstall()
        self.renderer.stop()
        for subscription in self._subscriptions:
            subscription.cancel()
        self._cancel_fetching()
        for task in list(self._tasks):
            task.cancel()
        await self.orchestrator.close()
        await self.controller.destroy()

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            self.report_fatal(task.exception())

    def _cancel_fetching(self) -> None:
        if self._fetching is not None:
            self._fetching.cancel()
            self._fetching = None

    def _on_fetching(self, num_peers: int) -> None:
        self.renderer.notice(
            f"[green]fetching torrent metadata from[/green] [bold]{num_peers}[/bold] peers"
        )

    def _on_metadata(self, session: Session) -> None:
        self._cancel_fetching()

    def _on_verifying(self, progress: dict) -> None:
        self.renderer.notice(
            f"[green]verifying existing torrent[/green] "
            f"[bold]{progress.get('percent_done', 0):.0f}%[/bold] "
            f"({progress.get('percent_verified', 0):.0f}% passed verification)"
        )

    def _on_ready(self, session: Session) -> None:
        swarm = session.swarm
        if self.config.list_files:
            print_file_list(self.console, swarm.files)
            self.controller.decide_exit()
            return

        index = select_file_index(swarm.files, self.config.index)
        player = self.config.player
        if player is not PlayerChoice.NONE:
            swarm.select_file(index)
        target = self.orchestrator.resolve(index, name=swarm.files[index].name)

        if self.config.stdout:
            session.mark_piping()
            self._spawn(self._pipe_stdout(session, index))
        if player is not PlayerChoice.NONE:
            self._spawn(self.orchestrator.launch(target))

        self.renderer.start(
            session,
            HeaderInfo(
                player_name=player.display_name or None,
                server_url=target.url,
                out=str(self.config.out) if self.config.out else None,
            ),
        )

    def _on_done(self, session: Session) -> None:
        if self.config.quiet:
            return
        wires = session.swarm.wires
        contributed = sum(1 for wire in wires if wire.downloaded > 0)
        self.console.print(
            f"[green]torrent downloaded successfully from[/green] "
            f"[bold]{contributed}/{len(wires)}[/bold] [green]peers in[/green] "
            f"[bold]{session.runtime()}s![/bold]"
        )

    async def _pipe_stdout(self, session: Session, index: int) -> None:
        stream = self.stdout or sys.stdout.buffer
        try:
            async for chunk in session.swarm.iter_file(index):
                await asyncio.to_thread(stream.write, chunk)
            await asyncio.to_thread(stream.flush)
        except BrokenPipeError:
            log.debug("stdout was closed by the reader.")
        finally:
            session.mark_piping(False)
        if self.config.player is PlayerChoice.NONE:
            self.gate.request(0)
