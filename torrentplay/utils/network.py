"""
Network helpers for building addresses other devices on the LAN can reach.
"""

import logging
import socket

log = logging.getLogger(__name__)


def lan_address() -> str:
    """
    Returns the IPv4 address of the interface used for outbound traffic.

    No packet is sent: connecting a UDP socket only selects a route.
    Falls back to the loopback address when the host has no usable route.
    """
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
        try:
            sock.connect(("10.255.255.255", 1))
            return sock.getsockname()[0]
        except OSError as e:
            log.debug(f"Could not determine LAN address, using loopback: {e}")
            return "127.0.0.1"
