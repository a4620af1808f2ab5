"""
Swarm Engine Layer.

This package defines the views and protocols the session core reads from the
swarm engine, the event subscriptions it uses, and the libtorrent-backed
implementation. The libtorrent modules are imported on demand so the core can
run against any engine that satisfies the protocols.
"""

from .base import ContentServer, Piece, SwarmEngine, SwarmHandle, TorrentFile, Wire
from .events import EventEmitter, Subscription

__all__ = [
    "ContentServer",
    "EventEmitter",
    "Piece",
    "Subscription",
    "SwarmEngine",
    "SwarmHandle",
    "TorrentFile",
    "Wire",
]
