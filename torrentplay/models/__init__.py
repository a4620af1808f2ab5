"""
Data Models Layer.

This package contains the run configuration, the session record and the
telemetry value objects shared by the core and the command-line layer.
"""

from .config import PlayerChoice, PlayerKind, RunConfig
from .session import Session, SessionState
from .telemetry import PeerRow, PieceRow, TelemetrySnapshot

__all__ = [
    "PeerRow",
    "PieceRow",
    "PlayerChoice",
    "PlayerKind",
    "RunConfig",
    "Session",
    "SessionState",
    "TelemetrySnapshot",
]
