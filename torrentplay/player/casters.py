"""
Cast devices: find a receiver on the LAN and tell it to play a URL.

AirPlay and XBMC/Kodi receivers are found over mDNS with zeroconf and then
commanded over HTTP with aiohttp; Chromecasts go through pychromecast.
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod

import aiohttp
import pychromecast
from pychromecast.error import PyChromecastError
from zeroconf import ServiceStateChange
from zeroconf.asyncio import AsyncServiceBrowser, AsyncServiceInfo, AsyncZeroconf

from torrentplay.exceptions import DeviceDiscoveryError
from torrentplay.models.config import PlayerChoice

log = logging.getLogger(__name__)

DISCOVERY_TIMEOUT = 30.0
COMMAND_TIMEOUT = 15.0
SERVICE_INFO_TIMEOUT_MS = 3000


class DeviceCaster(ABC):
    """Discovers one device and starts playback on it."""

    name = "device"

    def __init__(self, timeout: float = DISCOVERY_TIMEOUT):
        self.timeout = timeout

    @abstractmethod
    async def cast(self, url: str, content_type: str) -> None:
        """
        Raises:
            DeviceDiscoveryError: If no device is found or it rejects the command.
        """


class ZeroconfCaster(DeviceCaster):
    """A device advertised over mDNS and driven over HTTP."""

    service_type = ""
    command_timeout = COMMAND_TIMEOUT

    async def discover(self) -> tuple[str, int]:
        """Returns (host, port) of the first device announcing `service_type`."""
        aiozc = AsyncZeroconf()
        found: asyncio.Queue[str] = asyncio.Queue()

        def on_service_state_change(zeroconf, service_type, name, state_change):
            if state_change is ServiceStateChange.Added:
                found.put_nowait(name)

        async def first_device() -> tuple[str, int]:
            while True:
                name = await found.get()
                info = AsyncServiceInfo(self.service_type, name)
                if not await info.async_request(aiozc.zeroconf, SERVICE_INFO_TIMEOUT_MS):
                    continue
                addresses = info.parsed_addresses()
                if addresses and info.port:
                    log.debug(f"{self.name}: found '{name}' at {addresses[0]}:{info.port}")
                    return addresses[0], info.port

        browser = AsyncServiceBrowser(
            aiozc.zeroconf, [self.service_type], handlers=[on_service_state_change]
        )
        try:
            return await asyncio.wait_for(first_device(), self.timeout)
        except asyncio.TimeoutError as e:
            raise DeviceDiscoveryError(
                f"No {self.name} device found within {self.timeout:.0f}s."
            ) from e
        finally:
            await browser.async_cancel()
            await aiozc.async_close()

    async def cast(self, url: str, content_type: str) -> None:
        host, port = await self.discover()
        try:
            timeout = aiohttp.ClientTimeout(total=self.command_timeout)
            async with aiohttp.ClientSession(timeout=timeout) as session:
                await self.command(session, host, port, url)
        except asyncio.TimeoutError as e:
            raise DeviceDiscoveryError(
                f"{self.name} at {host} did not answer within {self.command_timeout:g}s."
            ) from e
        except (aiohttp.ClientError, ValueError) as e:
            raise DeviceDiscoveryError(f"{self.name} at {host} rejected playback: {e}") from e

    @abstractmethod
    async def command(
        self, session: aiohttp.ClientSession, host: str, port: int, url: str
    ) -> None: ...


class AirPlayCaster(ZeroconfCaster):
    name = "Airplay"
    service_type = "_airplay._tcp.local."

    async def command(self, session, host, port, url):
        body = f"Content-Location: {url}\nStart-Position: 0\n"
        async with session.post(
            f"http://{host}:{port}/play",
            data=body,
            headers={"Content-Type": "text/parameters"},
        ) as response:
            response.raise_for_status()


class XbmcCaster(ZeroconfCaster):
    name = "XBMC"
    service_type = "_xbmc-jsonrpc-h._tcp.local."

    async def command(self, session, host, port, url):
        payload = {
            "jsonrpc": "2.0",
            "method": "Player.Open",
            "params": {"item": {"file": url}},
            "id": 1,
        }
        async with session.post(
            f"http://{host}:{port}/jsonrpc",
            data=json.dumps(payload),
            headers={"Content-Type": "application/json"},
        ) as response:
            response.raise_for_status()
            result = await response.json(content_type=None)
        if "error" in result:
            raise DeviceDiscoveryError(f"XBMC refused playback: {result['error']}")


class ChromecastCaster(DeviceCaster):
    name = "Chromecast"

    def _play(self, url: str, content_type: str) -> str:
        chromecasts, browser = pychromecast.get_chromecasts(timeout=self.timeout)
        try:
            if not chromecasts:
                raise DeviceDiscoveryError(
                    f"No Chromecast found within {self.timeout:.0f}s."
                )
            cast = chromecasts[0]
            cast.wait(timeout=self.timeout)
            cast.media_controller.play_media(url, content_type)
            cast.media_controller.block_until_active(timeout=self.timeout)
            return cast.cast_info.friendly_name
        finally:
            browser.stop_discovery()

    async def cast(self, url: str, content_type: str) -> None:
        try:
            name = await asyncio.to_thread(self._play, url, content_type)
        except PyChromecastError as e:
            raise DeviceDiscoveryError(f"Chromecast playback failed: {e}") from e
        log.debug(f"Chromecast '{name}' is playing {url}")


CASTERS: dict[PlayerChoice, type[DeviceCaster]] = {
    PlayerChoice.AIRPLAY: AirPlayCaster,
    PlayerChoice.CHROMECAST: ChromecastCaster,
    PlayerChoice.XBMC: XbmcCaster,
}
