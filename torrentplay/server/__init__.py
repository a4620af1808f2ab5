"""
Content Server Layer.

This package serves the torrent's files over HTTP so that local players and
cast devices can stream them while the download is still in progress.
"""

from .http import HttpContentServer

__all__ = ["HttpContentServer"]
