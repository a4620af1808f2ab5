"""
The single place a run decides its exit code.
"""

import asyncio
import logging

from rich.console import Console
from rich.markup import escape

log = logging.getLogger(__name__)


class ExitGate:
    """
    Holds the process exit code for a run. The first request wins; later
    requests are counted but ignored.
    """

    def __init__(self):
        self._future: asyncio.Future[int] | None = None
        self._code: int | None = None
        self.requests = 0

    def _ensure_future(self) -> "asyncio.Future[int]":
        if self._future is None:
            self._future = asyncio.get_running_loop().create_future()
            if self._code is not None:
                self._future.set_result(self._code)
        return self._future

    @property
    def decided(self) -> bool:
        return self._code is not None

    @property
    def code(self) -> int | None:
        return self._code

    def request(self, code: int) -> bool:
        """Records an exit request. Returns True if this request decided the code."""
        self.requests += 1
        if self._code is not None:
            log.debug(f"Exit({code}) ignored, already exiting with {self._code}.")
            return False
        self._code = code
        if self._future is not None and not self._future.done():
            self._future.set_result(code)
        return True

    async def wait(self) -> int:
        return await self._ensure_future()


class FatalErrorReporter:
    """Prints one consistent error line for any fatal error and exits with 1."""

    def __init__(self, console: Console, gate: ExitGate):
        self.console = console
        self.gate = gate

    def __call__(self, error: BaseException | str) -> None:
        message = str(error) if isinstance(error, BaseException) else error
        self.console.print(f"[bold red]ERROR:[/bold red] {escape(message or repr(error))}")
        if isinstance(error, BaseException):
            log.debug("Fatal error details:", exc_info=error)
        self.gate.request(1)
