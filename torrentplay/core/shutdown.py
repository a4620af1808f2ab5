"""
Signal-driven shutdown, performed once no matter how many signals arrive.
"""

import asyncio
import logging
import signal

from rich.console import Console

from .exit import ExitGate

log = logging.getLogger(__name__)

SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class ShutdownSequencer:
    """
    On SIGINT/SIGTERM: stop the renderer, tell the operator, destroy the
    session, remove the handlers, then exit with the code the teardown
    returns.
    """

    def __init__(self, controller, renderer, gate: ExitGate, console: Console):
        self.controller = controller
        self.renderer = renderer
        self.gate = gate
        self.console = console
        self.teardowns = 0
        self._task: asyncio.Task | None = None
        self._installed: list[signal.Signals] = []
        self._fallback: dict[signal.Signals, object] = {}
        self._loop: asyncio.AbstractEventLoop | None = None

    @property
    def triggered(self) -> bool:
        return self._task is not None

    def install(self) -> None:
        self._loop = asyncio.get_running_loop()
        for sig in SHUTDOWN_SIGNALS:
            try:
                self._loop.add_signal_handler(sig, self.trigger)
            except NotImplementedError:
                # Windows event loops do not support add_signal_handler.
                self._fallback[sig] = signal.signal(sig, self._on_signal)
            self._installed.append(sig)
        log.debug("Shutdown signal handlers installed.")

    def uninstall(self) -> None:
        for sig in self._installed:
            if sig in self._fallback:
                signal.signal(sig, self._fallback.pop(sig))
            elif self._loop is not None:
                self._loop.remove_signal_handler(sig)
        self._installed.clear()

    def _on_signal(self, signum, frame) -> None:
        self._loop.call_soon_threadsafe(self.trigger)

    def trigger(self) -> asyncio.Task:
        """Starts the teardown; later calls return the teardown already running."""
        if self.triggered:
            log.debug("Shutdown already in progress.")
            return self._task
        self.renderer.stop()
        self.console.print("\n[green]torrentplay is exiting...[/green]")
        self.teardowns += 1
        self._task = asyncio.get_running_loop().create_task(self._teardown())
        return self._task

    async def _teardown(self) -> int:
        code = await self.controller.destroy()
        # A repeated signal during teardown must still reach trigger().
        self.uninstall()
        self.gate.request(code)
        return code
