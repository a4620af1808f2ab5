"""
Loads IP blocklists from a local file or an http(s) URL.

Accepted line formats:
    description:1.2.3.0-1.2.3.255   (P2P plaintext)
    1.2.3.4
    1.2.3.0/24
Blank lines and lines starting with '#' are ignored.
"""

import gzip
import ipaddress
import logging
from pathlib import Path

import aiofiles
import aiohttp

from torrentplay.exceptions import ConfigurationError

log = logging.getLogger(__name__)

IpRange = tuple[str, str]


def parse_blocklist_line(line: str) -> IpRange | None:
    """Parses one blocklist line into an inclusive (first, last) address range."""
    line = line.strip()
    if not line or line.startswith("#"):
        return None

    # The description may itself contain ':', the range is after the last one.
    # IPv6 ranges are only accepted without a description.
    candidate = line
    if ":" in line and "." in line.rsplit(":", 1)[1]:
        candidate = line.rsplit(":", 1)[1]

    try:
        if "-" in candidate:
            first, last = (part.strip() for part in candidate.split("-", 1))
            start = ipaddress.ip_address(first)
            end = ipaddress.ip_address(last)
            if start.version != end.version or start > end:
                return None
            return str(start), str(end)
        if "/" in candidate:
            network = ipaddress.ip_network(candidate, strict=False)
            return str(network.network_address), str(network.broadcast_address)
        address = ipaddress.ip_address(candidate)
        return str(address), str(address)
    except ValueError:
        return None


def parse_blocklist(text: str) -> list[IpRange]:
    ranges = []
    skipped = 0
    for line in text.splitlines():
        parsed = parse_blocklist_line(line)
        if parsed:
            ranges.append(parsed)
        elif line.strip() and not line.lstrip().startswith("#"):
            skipped += 1
    if skipped:
        log.debug(f"Skipped {skipped} malformed blocklist lines.")
    return ranges


def _decode(data: bytes) -> str:
    if data[:2] == b"\x1f\x8b":
        data = gzip.decompress(data)
    return data.decode("utf-8", errors="replace")


async def _fetch(url: str) -> bytes:
    timeout = aiohttp.ClientTimeout(total=60)
    async with aiohttp.ClientSession(timeout=timeout) as session:
        async with session.get(url) as response:
            response.raise_for_status()
            return await response.read()


async def load_blocklist(source: str) -> list[IpRange]:
    """
    Reads and parses a blocklist.

    Raises:
        ConfigurationError: If the source cannot be read.
    """
    try:
        if source.lower().startswith(("http://", "https://")):
            log.debug(f"Fetching blocklist from {source}")
            data = await _fetch(source)
        else:
            async with aiofiles.open(Path(source).expanduser(), "rb") as f:
                data = await f.read()
    except (aiohttp.ClientError, OSError) as e:
        raise ConfigurationError(f"Could not load blocklist '{source}': {e}") from e

    ranges = parse_blocklist(_decode(data))
    log.info(f"Loaded {len(ranges)} blocked IP ranges.")
    return ranges
