"""
Session state owned by the SessionController.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from torrentplay.engine.base import ContentServer, SwarmHandle


class SessionState(str, Enum):
    """Lifecycle states of a download session."""

    CREATED = "created"
    AWAITING_METADATA = "awaiting-metadata"
    VERIFYING = "verifying"
    READY = "ready"
    DOWNLOADING = "downloading"
    DONE = "done"
    DESTROYED = "destroyed"


@dataclass
class Session:
    """One download run: the swarm handle, the content server and their flags."""

    identifier: str
    started_at: float = field(default_factory=time.monotonic)
    state: SessionState = SessionState.CREATED
    swarm: Optional["SwarmHandle"] = None
    server: Optional["ContentServer"] = None
    hotswaps: int = 0
    _serving: bool = field(default=False, repr=False)
    _piping: bool = field(default=False, repr=False)

    @property
    def serving(self) -> bool:
        """True once the content server has accepted a connection."""
        return self._serving

    def mark_serving(self) -> None:
        self._serving = True

    @property
    def piping(self) -> bool:
        """True while the selected file is being written to standard output."""
        return self._piping

    def mark_piping(self, active: bool = True) -> None:
        self._piping = active

    @property
    def consumed(self) -> bool:
        """A content-server client or the stdout pipe is still reading."""
        return self._serving or self._piping

    def runtime(self, now: float | None = None) -> int:
        """Whole seconds since the session started."""
        now = time.monotonic() if now is None else now
        return int(now - self.started_at)
