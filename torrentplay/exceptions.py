"""
Defines custom exceptions for the application to allow for more specific error handling.
"""


class TorrentPlayError(Exception):
    """Base exception for all application-specific errors."""


class InvalidIdentifierError(TorrentPlayError):
    """Raised when a torrent identifier cannot be resolved to a torrent."""


class PlayerNotFoundError(TorrentPlayError):
    """Raised when the executable for a local player cannot be located."""


class PlaybackLaunchError(TorrentPlayError):
    """Raised when a local player fails to start or exits abnormally."""


class DeviceDiscoveryError(TorrentPlayError):
    """
    Raised when a cast device cannot be discovered or commanded.
    Never fatal: the download keeps running.
    """


class ConfigurationError(TorrentPlayError):
    """Raised for issues related to configuration loading or validation."""


class SwarmError(TorrentPlayError):
    """Raised when the swarm engine reports an error for the running torrent."""
