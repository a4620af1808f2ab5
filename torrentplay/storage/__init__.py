"""
Storage Layer.

This package handles the optional INI file holding per-user run defaults.
"""

from .config_manager import ConfigManager

__all__ = ["ConfigManager"]
