"""
Core Session Logic.

This package drives a download session: the lifecycle state machine, the
telemetry snapshots it renders, the exit decision and signal-driven shutdown.
"""

from .exit import ExitGate, FatalErrorReporter
from .session_controller import SessionController
from .shutdown import ShutdownSequencer
from .snapshot import TelemetrySnapshotter

__all__ = [
    "ExitGate",
    "FatalErrorReporter",
    "SessionController",
    "ShutdownSequencer",
    "TelemetrySnapshotter",
]
