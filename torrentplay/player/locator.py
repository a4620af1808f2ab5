"""
Finds local player executables, one locator per platform family.
"""

import logging
import os
import platform
import shutil
import sys
from abc import ABC, abstractmethod
from pathlib import Path

from torrentplay.exceptions import PlayerNotFoundError

log = logging.getLogger(__name__)

MACOS_VLC = "/Applications/VLC.app/Contents/MacOS/VLC"


class PlayerLocator(ABC):
    """Resolves a player's executable name to a path that can be spawned."""

    @abstractmethod
    def locate(self, executable: str) -> str:
        """
        Raises:
            PlayerNotFoundError: If no install of the player can be found.
        """


def _is_executable(path: Path) -> bool:
    return path.is_file() and os.access(path, os.X_OK)


class PosixPlayerLocator(PlayerLocator):
    """PATH first; for VLC also the system and per-user macOS app bundles."""

    def __init__(self, home: Path | None = None):
        self.home = home

    def candidates(self, executable: str) -> list[Path]:
        if executable != "vlc":
            return []
        home = self.home or Path(os.environ.get("HOME", ""))
        return [Path(MACOS_VLC), home / MACOS_VLC.lstrip("/")]

    def locate(self, executable: str) -> str:
        if found := shutil.which(executable):
            return found
        for candidate in self.candidates(executable):
            if _is_executable(candidate):
                return str(candidate)
        raise PlayerNotFoundError(f"Could not find '{executable}'. Is it installed?")


class WindowsPlayerLocator(PlayerLocator):
    """VLC's InstallDir from the registry, 32-bit view first on 64-bit Windows."""

    VLC_KEYS_X64 = (r"Software\Wow6432Node\VideoLAN\VLC", r"Software\VideoLAN\VLC")
    VLC_KEYS_X86 = (r"Software\VideoLAN\VLC",)

    def __init__(self, machine: str | None = None):
        self.machine = (machine or platform.machine()).lower()

    def registry_keys(self) -> tuple[str, ...]:
        if self.machine in ("amd64", "x86_64", "arm64"):
            return self.VLC_KEYS_X64
        return self.VLC_KEYS_X86

    def _install_dir(self, key_path: str) -> str | None:
        import winreg

        try:
            with winreg.OpenKey(winreg.HKEY_LOCAL_MACHINE, key_path) as key:
                value, _ = winreg.QueryValueEx(key, "InstallDir")
                return value
        except OSError:
            return None

    def locate(self, executable: str) -> str:
        if executable == "vlc":
            for key_path in self.registry_keys():
                install_dir = self._install_dir(key_path)
                if install_dir:
                    log.debug(f"VLC found via registry key '{key_path}'.")
                    return str(Path(install_dir) / "vlc.exe")
        if found := shutil.which(executable):
            return found
        raise PlayerNotFoundError(f"Could not find '{executable}'. Is it installed?")


def default_locator() -> PlayerLocator:
    if sys.platform == "win32":
        return WindowsPlayerLocator()
    return PosixPlayerLocator()
