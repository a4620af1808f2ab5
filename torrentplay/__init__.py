"""Stream torrents to media players while they download."""

__version__ = "0.4.0"
