import socket
from dataclasses import dataclass
from typing import Dict, Any, Optional

from loguru import logger

from ..core.exceptions import ConfigurationError


@dataclass
class SocketOptions:
    """TCP socket options applied to every channel socket"""
    nodelay: bool = True                # Disable Nagle's algorithm
    keepalive: bool = True              # Enable TCP keepalive mechanism
    recvbuf_size: Optional[int] = None  # SO_RCVBUF, kernel default when None
    sendbuf_size: Optional[int] = None  # SO_SNDBUF, kernel default when None
    max_buffer_size: int = 16 * 1024 * 1024  # Receive buffer cap (16MB)

    def __post_init__(self) -> None:
        if self.max_buffer_size <= 0:
            raise ConfigurationError(
                f"max_buffer_size must be positive, got {self.max_buffer_size}")

    def apply(self, sock: socket.socket) -> None:
        """Apply options to an unconnected socket"""
        try:
            if self.nodelay:
                sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
            if self.keepalive:
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)
            if self.recvbuf_size:
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_RCVBUF, self.recvbuf_size)
            if self.sendbuf_size:
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_SNDBUF, self.sendbuf_size)
        except OSError as e:
            logger.warning(f"Failed to apply socket options on fd={sock.fileno()}: {e}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert socket options to dictionary"""
        return {
            "nodelay": self.nodelay,
            "keepalive": self.keepalive,
            "recvbuf_size": self.recvbuf_size,
            "sendbuf_size": self.sendbuf_size,
            "max_buffer_size": self.max_buffer_size,
        }
