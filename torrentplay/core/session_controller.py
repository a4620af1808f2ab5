"""
Drives a download session through its lifecycle.

Swarm and content-server callbacks never touch the Session directly: they are
posted onto one queue and a single dispatcher task applies them in order, so
every state transition happens in exactly one place.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from torrentplay.engine import base
from torrentplay.engine.base import ContentServer, SwarmEngine, SwarmHandle
from torrentplay.engine.events import EventEmitter, Subscription
from torrentplay.exceptions import TorrentPlayError
from torrentplay.models.config import RunConfig
from torrentplay.models.session import Session, SessionState
from torrentplay.server.http import HttpContentServer

from .exit import ExitGate

log = logging.getLogger(__name__)

# Lifecycle events emitted on SessionController.events
FETCHING = "fetching"
METADATA = "metadata"
VERIFYING = "verifying"
READY = "ready"
DONE = "done"


class EventKind(str, Enum):
    WIRE = "wire"
    METADATA = "metadata"
    VERIFYING = "verifying"
    LISTENING = "listening"
    CONNECTION = "connection"
    HOTSWAP = "hotswap"
    DONE = "done"
    ERROR = "error"


@dataclass(frozen=True)
class SessionEvent:
    kind: EventKind
    args: tuple = ()


SWARM_EVENTS = {
    base.WIRE: EventKind.WIRE,
    base.METADATA: EventKind.METADATA,
    base.VERIFYING: EventKind.VERIFYING,
    base.HOTSWAP: EventKind.HOTSWAP,
    base.DONE: EventKind.DONE,
    base.ERROR: EventKind.ERROR,
}
SERVER_EVENTS = {
    base.LISTENING: EventKind.LISTENING,
    base.CONNECTION: EventKind.CONNECTION,
}


class SessionController:
    """
    Owns the Session and its state machine:
    created -> awaiting-metadata -> (verifying) -> ready -> downloading -> done.

    `ready` fires exactly once, when metadata is available and, unless only
    listing files, the content server is listening; the two may arrive in
    either order. Subscribers listen on `events` for `fetching`, `metadata`,
    `verifying`, `ready` and `done`.
    """

    def __init__(
        self,
        config: RunConfig,
        engine: SwarmEngine,
        gate: ExitGate,
        on_fatal: Callable[[BaseException], None],
        server_factory: Callable[[SwarmHandle], ContentServer] | None = None,
    ):
        self.config = config
        self.engine = engine
        self.gate = gate
        self.on_fatal = on_fatal
        self.server_factory = server_factory or HttpContentServer
        self.events = EventEmitter()
        self.session: Session | None = None

        self._queue: asyncio.Queue[SessionEvent] = asyncio.Queue()
        self._dispatcher: asyncio.Task | None = None
        self._subscriptions: list[Subscription] = []
        self._has_metadata = False
        self._listening = False
        self._ready = False
        self._pending_done = False
        self._teardown: asyncio.Task | None = None
        self._handlers = {
            EventKind.WIRE: self._on_wire,
            EventKind.METADATA: self._on_metadata,
            EventKind.VERIFYING: self._on_verifying,
            EventKind.LISTENING: self._on_listening,
            EventKind.CONNECTION: self._on_connection,
            EventKind.HOTSWAP: self._on_hotswap,
            EventKind.DONE: self._on_done,
            EventKind.ERROR: self._on_error,
        }

    @property
    def ready(self) -> bool:
        return self._ready

    async def start(self) -> Session:
        """
        Adds the torrent to the swarm engine and, unless only listing files,
        opens the content server on the configured port.

        Raises:
            InvalidIdentifierError: If the swarm engine cannot resolve the identifier.
            TorrentPlayError: If the content server cannot bind its port.
        """
        session = Session(identifier=self.config.torrent_id)
        self.session = session
        swarm = await self.engine.add(self.config.torrent_id, save_path=self.config.out)
        self._dispatcher = asyncio.create_task(self._run())
        session.swarm = swarm
        session.state = SessionState.AWAITING_METADATA
        self._forward(swarm.events, SWARM_EVENTS)
        if swarm.has_metadata:
            self._post(EventKind.METADATA)

        if self.config.list_files:
            return session

        server = self.server_factory(swarm)
        session.server = server
        self._forward(server.events, SERVER_EVENTS)
        try:
            await server.listen(self.config.port)
        except OSError as e:
            raise TorrentPlayError(
                f"Could not listen on port {self.config.port}: {e.strerror or e}"
            ) from e
        return session

    def decide_exit(self) -> bool:
        """
        Exits with 0 unless the content server has served a connection or the
        file is being piped to stdout, in which case a consumer is still
        reading and the process keeps running.
        """
        if self.session is not None and self.session.consumed:
            log.debug("Content is being consumed, not exiting.")
            return False
        return self.gate.request(0)

    async def destroy(self) -> int:
        """Tears down the swarm and content server once. Returns the exit code."""
        if self._teardown is None:
            self._teardown = asyncio.create_task(self._destroy())
        return await self._teardown

    async def _destroy(self) -> int:
        for subscription in self._subscriptions:
            subscription.cancel()
        self._subscriptions.clear()

        code = 0
        session = self.session
        try:
            if session is not None and session.server is not None:
                await session.server.close()
            await self.engine.destroy()
        except Exception as e:
            log.error(f"[red]Teardown failed: {e}[/red]", exc_info=True)
            code = 1
        if session is not None:
            session.state = SessionState.DESTROYED

        if self._dispatcher is not None and self._dispatcher is not asyncio.current_task():
            self._dispatcher.cancel()
        self._dispatcher = None
        log.debug(f"Session destroyed (exit code {code}).")
        return code

    def _forward(self, emitter: EventEmitter, mapping: dict[str, EventKind]) -> None:
        for name, kind in mapping.items():
            self._subscriptions.append(
                emitter.on(name, lambda *args, kind=kind: self._post(kind, *args))
            )

    def _post(self, kind: EventKind, *args) -> None:
        self._queue.put_nowait(SessionEvent(kind, args))

    async def _run(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                self._handlers[event.kind](*event.args)
            except Exception as e:
                self.on_fatal(e)

    def _on_wire(self, *args) -> None:
        if self.session.state is SessionState.AWAITING_METADATA:
            self.events.emit(FETCHING, self.session.swarm.num_peers)

    def _on_metadata(self, *args) -> None:
        if not self._has_metadata:
            self._has_metadata = True
            self.events.emit(METADATA, self.session)
        self._maybe_ready()

    def _on_listening(self, *args) -> None:
        self._listening = True
        self._maybe_ready()

    def _on_verifying(self, progress: dict | None = None) -> None:
        if self.session.state is SessionState.AWAITING_METADATA:
            self.session.state = SessionState.VERIFYING
        self.events.emit(VERIFYING, progress or {})

    def _on_connection(self, *args) -> None:
        if not self.session.serving:
            log.debug(f"First content connection from {args[0] if args else 'client'}.")
        self.session.mark_serving()

    def _on_hotswap(self, *args) -> None:
        self.session.hotswaps += 1

    def _on_done(self, *args) -> None:
        if not self._ready:
            self._pending_done = True
            return
        if self.session.state is SessionState.DONE:
            return
        self.session.state = SessionState.DONE
        self.events.emit(DONE, self.session)
        self.decide_exit()

    def _on_error(self, error: BaseException | str = "Unknown swarm error") -> None:
        if not isinstance(error, BaseException):
            error = TorrentPlayError(str(error))
        self.on_fatal(error)

    def _maybe_ready(self) -> None:
        if self._ready or not self._has_metadata:
            return
        if not (self.config.list_files or self._listening):
            return
        self._ready = True
        self.session.state = SessionState.READY
        self.events.emit(READY, self.session)
        if not self.config.list_files:
            self.session.state = SessionState.DOWNLOADING
        if self._pending_done:
            self._pending_done = False
            self._on_done()
