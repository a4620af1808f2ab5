"""
Playback Layer.

This package launches the selected player against the content server: local
player subprocesses located per platform, or cast devices found on the LAN.
"""

from .locator import PlayerLocator, PosixPlayerLocator, WindowsPlayerLocator
from .orchestrator import (
    PlaybackTarget,
    PlayerOrchestrator,
    PlayerProcess,
    select_file_index,
)

__all__ = [
    "PlaybackTarget",
    "PlayerLocator",
    "PlayerOrchestrator",
    "PlayerProcess",
    "PosixPlayerLocator",
    "WindowsPlayerLocator",
    "select_file_index",
]
