"""
Torrent metadata handling on top of libtorrent: resolving identifiers into
add parameters, describing metadata for `info`, and building `.torrent` files.
"""

import logging
from pathlib import Path
from typing import Any

import aiohttp
import libtorrent as lt

from torrentplay import __version__
from torrentplay.exceptions import InvalidIdentifierError, TorrentPlayError

from .identifiers import IdentifierKind, classify_identifier, magnet_for_info_hash

log = logging.getLogger(__name__)


async def fetch_torrent_file(url: str) -> bytes:
    """Downloads a .torrent file over http(s)."""
    timeout = aiohttp.ClientTimeout(total=30)
    try:
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.get(url) as response:
                response.raise_for_status()
                return await response.read()
    except aiohttp.ClientError as e:
        raise InvalidIdentifierError(f"Could not fetch torrent from {url}: {e}") from e


def _torrent_info_from_bytes(data: bytes, source: str) -> "lt.torrent_info":
    decoded = lt.bdecode(data)
    if not decoded:
        raise InvalidIdentifierError(f"Invalid torrent file: {source}")
    try:
        return lt.torrent_info(decoded)
    except RuntimeError as e:
        raise InvalidIdentifierError(f"Invalid torrent file: {source} ({e})") from e


def _torrent_info_from_path(path: Path) -> "lt.torrent_info":
    try:
        return lt.torrent_info(str(path))
    except RuntimeError as e:
        raise InvalidIdentifierError(f"Invalid torrent file: {path} ({e})") from e


def _parse_magnet(uri: str) -> "lt.add_torrent_params":
    try:
        return lt.parse_magnet_uri(uri)
    except RuntimeError as e:
        raise InvalidIdentifierError(f"Invalid magnet URI: {uri} ({e})") from e


async def resolve_add_params(torrent_id: str) -> "lt.add_torrent_params":
    """
    Turns any supported identifier into libtorrent add parameters.

    Raises:
        InvalidIdentifierError: If the identifier cannot be resolved.
    """
    kind = classify_identifier(torrent_id)
    log.debug(f"Resolving '{torrent_id}' as {kind.value}")

    if kind is IdentifierKind.MAGNET:
        return _parse_magnet(torrent_id)
    if kind is IdentifierKind.INFO_HASH:
        return _parse_magnet(magnet_for_info_hash(torrent_id))

    if kind is IdentifierKind.URL:
        info = _torrent_info_from_bytes(await fetch_torrent_file(torrent_id), torrent_id)
    else:
        info = _torrent_info_from_path(Path(torrent_id).expanduser())

    params = lt.add_torrent_params()
    params.ti = info
    return params


def _describe_magnet(params: "lt.add_torrent_params") -> dict[str, Any]:
    return {
        "infoHash": str(params.info_hashes.v1),
        "name": params.name,
        "announce": list(params.trackers),
        "urlList": list(params.url_seeds),
    }


def _describe_torrent_info(info: "lt.torrent_info") -> dict[str, Any]:
    storage = info.files()
    files = []
    for i in range(storage.num_files()):
        path = storage.file_path(i)
        files.append(
            {
                "path": path,
                "name": Path(path).name,
                "length": storage.file_size(i),
                "offset": storage.file_offset(i),
            }
        )
    num_pieces = info.num_pieces()
    return {
        "infoHash": str(info.info_hashes().v1),
        "name": info.name(),
        "created": info.creation_date(),
        "createdBy": info.creator(),
        "comment": info.comment(),
        "private": info.priv(),
        "announce": [tracker.url for tracker in info.trackers()],
        "urlList": [seed["url"] for seed in info.web_seeds()],
        "files": files,
        "length": info.total_size(),
        "pieceLength": info.piece_length(),
        "lastPieceLength": info.piece_size(num_pieces - 1) if num_pieces else 0,
        "numPieces": num_pieces,
    }


async def describe_torrent(torrent_id: str) -> dict[str, Any]:
    """
    Returns the torrent's metadata as a JSON-serialisable dictionary.

    Raises:
        InvalidIdentifierError: If the identifier cannot be resolved.
    """
    params = await resolve_add_params(torrent_id)
    if params.ti is not None:
        return _describe_torrent_info(params.ti)
    return _describe_magnet(params)


def create_torrent(path: Path, announce: list[str] | None = None) -> bytes:
    """
    Builds a bencoded .torrent for a file or directory.

    Raises:
        TorrentPlayError: If the path holds no files.
    """
    path = path.expanduser().resolve()
    if not path.exists():
        raise TorrentPlayError(f"No such file or directory: {path}")

    storage = lt.file_storage()
    lt.add_files(storage, str(path))
    if storage.num_files() == 0:
        raise TorrentPlayError(f"Nothing to add to a torrent in: {path}")

    torrent = lt.create_torrent(storage)
    torrent.set_creator(f"torrentplay/{__version__}")
    for tier, url in enumerate(announce or []):
        torrent.add_tracker(url, tier)
    lt.set_piece_hashes(torrent, str(path.parent))
    log.debug(f"Created torrent for {storage.num_files()} files under '{path}'.")
    return lt.bencode(torrent.generate())
