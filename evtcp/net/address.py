"""
Target address resolution.

Addresses are resolved once, when a client starts, and the resolved socket
address is reused for every reconnect attempt.
"""

import socket
from dataclasses import dataclass
from typing import Any, Tuple

from loguru import logger

from ..core.exceptions import AddressResolutionError


@dataclass(frozen=True)
class Address:
    """Resolved TCP endpoint."""
    host: str
    port: int
    family: int = socket.AF_INET
    sockaddr: Tuple[Any, ...] = ()

    def __post_init__(self) -> None:
        if not self.sockaddr:
            object.__setattr__(self, 'sockaddr', (self.host, self.port))

    @property
    def ip(self) -> str:
        return str(self.sockaddr[0])

    def __str__(self) -> str:
        return format_sockaddr(self.family, self.sockaddr)


def format_sockaddr(family: int, sockaddr: Tuple[Any, ...]) -> str:
    """Format a socket address as ``ip:port`` (``[ip]:port`` for IPv6)."""
    if not sockaddr:
        return ""
    if family == socket.AF_INET6:
        return f"[{sockaddr[0]}]:{sockaddr[1]}"
    return f"{sockaddr[0]}:{sockaddr[1]}"


def resolve_address(host: str, port: int) -> Address:
    """
    Resolve host and port into an Address.

    Args:
        host: Host name or numeric IP address
        port: TCP port (1-65535)

    Returns:
        The first stream address returned by the resolver

    Raises:
        AddressResolutionError: If the port is out of range or the host
            cannot be resolved
    """
    if not isinstance(port, int) or not (1 <= port <= 65535):
        raise AddressResolutionError(
            f"Port must be between 1 and 65535, got {port}", host=host, port=port)
    if not host:
        raise AddressResolutionError("Host must not be empty", host=host, port=port)

    try:
        infos = socket.getaddrinfo(
            host, port, type=socket.SOCK_STREAM, proto=socket.IPPROTO_TCP)
    except (socket.gaierror, UnicodeError) as e:
        raise AddressResolutionError(
            f"Cannot resolve {host}:{port}: {e}", host=host, port=port) from e

    if not infos:
        raise AddressResolutionError(
            f"No addresses found for {host}:{port}", host=host, port=port)

    family, _, _, _, sockaddr = infos[0]
    address = Address(host=host, port=port, family=family, sockaddr=tuple(sockaddr))
    logger.debug(f"Resolved {host}:{port} -> {address}")
    return address
