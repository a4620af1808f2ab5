"""
Classification of torrent identifiers given on the command line.
"""

import re
from enum import Enum
from pathlib import Path

from torrentplay.exceptions import InvalidIdentifierError

_HEX_INFO_HASH = re.compile(r"^[0-9a-fA-F]{40}$")
_BASE32_INFO_HASH = re.compile(r"^[a-zA-Z2-7]{32}$")


class IdentifierKind(Enum):
    MAGNET = "magnet"
    INFO_HASH = "info_hash"
    URL = "url"
    PATH = "path"


def classify_identifier(torrent_id: str) -> IdentifierKind:
    """
    Decides how a torrent identifier should be resolved.

    Raises:
        InvalidIdentifierError: If the identifier matches no supported form.
    """
    torrent_id = (torrent_id or "").strip()
    if not torrent_id:
        raise InvalidIdentifierError("Invalid torrent identifier")
    if torrent_id.lower().startswith("magnet:"):
        return IdentifierKind.MAGNET
    if _HEX_INFO_HASH.match(torrent_id) or _BASE32_INFO_HASH.match(torrent_id):
        return IdentifierKind.INFO_HASH
    if torrent_id.lower().startswith(("http://", "https://")):
        return IdentifierKind.URL
    if Path(torrent_id).expanduser().is_file():
        return IdentifierKind.PATH
    raise InvalidIdentifierError(f"Invalid torrent identifier: {torrent_id}")


def magnet_for_info_hash(info_hash: str) -> str:
    return f"magnet:?xt=urn:btih:{info_hash}"
