"""Tests for torrentplay.core.session_controller."""

from unittest.mock import MagicMock

import pytest

from conftest import FakeEngine, FakeHandle, FakeServer, drain
from torrentplay.core import session_controller as lifecycle
from torrentplay.core.exit import ExitGate
from torrentplay.core.session_controller import SessionController
from torrentplay.engine import base
from torrentplay.exceptions import InvalidIdentifierError, SwarmError
from torrentplay.models.config import RunConfig
from torrentplay.models.session import SessionState

pytestmark = [pytest.mark.unit]


def _controller(engine, servers=None, announce=True, **options):
    servers = servers if servers is not None else []

    def factory(swarm):
        server = FakeServer(swarm, announce=announce)
        servers.append(server)
        return server

    config = RunConfig.from_options("magnet:?xt=urn:btih:abc", **options)
    on_fatal = MagicMock()
    gate = ExitGate()
    controller = SessionController(config, engine, gate, on_fatal, server_factory=factory)
    return controller, gate, on_fatal


def _record(controller, event):
    calls = []
    controller.events.on(event, lambda *args: calls.append(args))
    return calls


class TestReadyTransition:
    @pytest.mark.asyncio
    async def test_metadata_after_listening(self, engine, handle):
        controller, gate, _ = _controller(engine)
        ready = _record(controller, lifecycle.READY)
        session = await controller.start()
        await drain()
        assert ready == []

        handle.has_metadata = True
        handle.events.emit(base.METADATA)
        await drain()

        assert len(ready) == 1
        assert session.state is SessionState.DOWNLOADING

    @pytest.mark.asyncio
    async def test_metadata_before_listening(self):
        handle = FakeHandle(has_metadata=True)
        servers = []
        controller, _, _ = _controller(FakeEngine(handle), servers=servers, announce=False)
        ready = _record(controller, lifecycle.READY)
        await controller.start()
        await drain()
        assert ready == []

        servers[0].events.emit(base.LISTENING, 8000)
        await drain()
        assert len(ready) == 1

    @pytest.mark.asyncio
    async def test_ready_fires_exactly_once(self):
        handle = FakeHandle(has_metadata=True)
        servers = []
        controller, _, _ = _controller(FakeEngine(handle), servers=servers)
        ready = _record(controller, lifecycle.READY)
        await controller.start()
        handle.events.emit(base.METADATA)
        servers[0].events.emit(base.LISTENING, 8000)
        await drain()
        assert len(ready) == 1

    @pytest.mark.asyncio
    async def test_list_mode_skips_server(self):
        handle = FakeHandle(has_metadata=True)
        servers = []
        controller, _, _ = _controller(FakeEngine(handle), servers=servers, list_files=True)
        ready = _record(controller, lifecycle.READY)
        session = await controller.start()
        await drain()

        assert servers == []
        assert session.server is None
        assert len(ready) == 1
        assert session.state is SessionState.READY

    @pytest.mark.asyncio
    async def test_server_binds_configured_port(self, engine):
        servers = []
        controller, _, _ = _controller(engine, servers=servers, port=9090)
        await controller.start()
        assert servers[0].port == 9090


class TestLifecycleEvents:
    @pytest.mark.asyncio
    async def test_invalid_identifier(self, engine):
        config = RunConfig.from_options("not-a-torrent")
        controller = SessionController(config, engine, ExitGate(), MagicMock(), FakeServer)
        with pytest.raises(InvalidIdentifierError):
            await controller.start()

    @pytest.mark.asyncio
    async def test_fetching_only_while_awaiting_metadata(self, engine, handle):
        controller, _, _ = _controller(engine)
        fetching = _record(controller, lifecycle.FETCHING)
        await controller.start()
        handle.events.emit(base.WIRE)
        await drain()
        assert fetching == [(0,)]

        handle.has_metadata = True
        handle.events.emit(base.METADATA)
        handle.events.emit(base.WIRE)
        await drain()
        assert len(fetching) == 1

    @pytest.mark.asyncio
    async def test_verifying_does_not_block_ready(self, engine, handle):
        controller, _, _ = _controller(engine)
        verifying = _record(controller, lifecycle.VERIFYING)
        session = await controller.start()
        progress = {"percent_done": 40.0, "percent_verified": 25.0}
        handle.events.emit(base.VERIFYING, progress)
        await drain()
        assert session.state is SessionState.VERIFYING
        assert verifying == [(progress,)]

        handle.events.emit(base.METADATA)
        await drain()
        assert controller.ready

    @pytest.mark.asyncio
    async def test_swarm_error_is_fatal(self, engine, handle):
        controller, _, on_fatal = _controller(engine)
        await controller.start()
        error = SwarmError("tracker exploded")
        handle.events.emit(base.ERROR, error)
        await drain()
        on_fatal.assert_called_once_with(error)

    @pytest.mark.asyncio
    async def test_hotswaps_are_counted(self, engine, handle):
        controller, _, _ = _controller(engine)
        session = await controller.start()
        handle.events.emit(base.HOTSWAP)
        handle.events.emit(base.HOTSWAP)
        await drain()
        assert session.hotswaps == 2


class TestExitDecision:
    @pytest.mark.asyncio
    async def test_done_without_connection_exits_zero(self):
        handle = FakeHandle(has_metadata=True)
        controller, gate, _ = _controller(FakeEngine(handle))
        session = await controller.start()
        handle.events.emit(base.DONE)
        await drain()

        assert session.state is SessionState.DONE
        assert gate.code == 0

    @pytest.mark.asyncio
    async def test_done_after_connection_keeps_running(self):
        handle = FakeHandle(has_metadata=True)
        servers = []
        controller, gate, _ = _controller(FakeEngine(handle), servers=servers)
        session = await controller.start()
        servers[0].events.emit(base.CONNECTION, "127.0.0.1")
        handle.events.emit(base.DONE)
        await drain()

        assert session.serving
        assert session.state is SessionState.DONE
        assert not gate.decided

    @pytest.mark.asyncio
    async def test_done_while_piping_keeps_running(self):
        handle = FakeHandle(has_metadata=True)
        controller, gate, _ = _controller(FakeEngine(handle), stdout=True)
        session = await controller.start()
        session.mark_piping()
        handle.events.emit(base.DONE)
        await drain()

        assert not session.serving
        assert session.state is SessionState.DONE
        assert not gate.decided

        session.mark_piping(False)
        assert controller.decide_exit()
        assert gate.code == 0

    @pytest.mark.asyncio
    async def test_done_before_ready_waits_for_ready(self, engine, handle):
        controller, gate, _ = _controller(engine)
        done = _record(controller, lifecycle.DONE)
        await controller.start()
        handle.events.emit(base.DONE)
        await drain()
        assert done == []
        assert not gate.decided

        handle.events.emit(base.METADATA)
        await drain()
        assert len(done) == 1
        assert gate.code == 0


class TestDestroy:
    @pytest.mark.asyncio
    async def test_destroy_is_idempotent(self, engine, handle):
        servers = []
        controller, _, _ = _controller(engine, servers=servers)
        session = await controller.start()

        assert await controller.destroy() == 0
        assert await controller.destroy() == 0

        assert engine.destroyed == 1
        assert servers[0].closed == 1
        assert session.state is SessionState.DESTROYED

    @pytest.mark.asyncio
    async def test_destroy_cancels_subscriptions(self, engine, handle):
        controller, _, _ = _controller(engine)
        await controller.start()
        assert handle.events.listener_count(base.WIRE) == 1

        await controller.destroy()
        assert handle.events.listener_count(base.WIRE) == 0

    @pytest.mark.asyncio
    async def test_teardown_failure_returns_one(self, engine):
        async def broken():
            raise RuntimeError("session stuck")

        engine.destroy = broken
        controller, _, _ = _controller(engine)
        await controller.start()
        assert await controller.destroy() == 1
