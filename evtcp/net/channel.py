"""
Channel: one TCP socket connection driven by the asyncio event loop.

A Channel is used for exactly one connection attempt. It creates its
non-blocking socket up front (so the fd is known before connecting), runs
the connect as a task on the loop and then acts as the asyncio protocol for
the resulting transport. All callbacks are direct calls on the loop thread.

Callbacks:
- on_connect(channel): the connect succeeded
- on_message(channel, buffer): new bytes were appended to the receive buffer
- on_close(channel): the connect failed, the peer closed, or close() was
  called on a connecting/connected channel
"""

import asyncio
import socket
import time
from typing import Any, Callable, Optional, Union

from loguru import logger

from ..core.exceptions import ConnectFailure, EvTcpError, WriteOnClosedChannel
from .address import Address, format_sockaddr
from .buffer import DEFAULT_BUFFER_SIZE, Buffer
from .config import SocketOptions
from .state import ChannelState, ConnectionStats

ChannelCallback = Callable[["Channel"], Any]
MessageCallback = Callable[["Channel", Buffer], Any]


class Channel(asyncio.Protocol):
    """Single TCP connection with a receive buffer and event callbacks"""

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        address: Address,
        on_connect: Optional[ChannelCallback] = None,
        on_message: Optional[MessageCallback] = None,
        on_close: Optional[ChannelCallback] = None,
        socket_options: Optional[SocketOptions] = None,
    ):
        self._loop = loop
        self._address = address
        self._options = socket_options or SocketOptions()
        self.on_connect = on_connect
        self.on_message = on_message
        self.on_close = on_close

        self._state = ChannelState.DISCONNECTED
        self._transport: Optional[asyncio.Transport] = None
        self._connect_task: Optional[asyncio.Task[None]] = None
        max_buffer_size = self._options.max_buffer_size
        self._buffer = Buffer(
            initial_size=min(DEFAULT_BUFFER_SIZE, max_buffer_size), max_size=max_buffer_size)
        self._stats = ConnectionStats()
        self._local_addr = ""
        self.last_error: Optional[EvTcpError] = None

        self._sock: Optional[socket.socket] = None
        self._fd = -1
        try:
            sock = socket.socket(address.family, socket.SOCK_STREAM)
        except OSError as e:
            # Reported through on_close once connect() runs
            self.last_error = ConnectFailure(
                f"Cannot create socket for {self.peeraddr()}: {e}",
                peeraddr=self.peeraddr(), errno=e.errno)
        else:
            sock.setblocking(False)
            self._options.apply(sock)
            self._sock = sock
            self._fd = sock.fileno()

    def __repr__(self) -> str:
        return f"<Channel fd={self._fd} peer={self.peeraddr()} state={self._state.name}>"

    @property
    def state(self) -> ChannelState:
        return self._state

    @property
    def id(self) -> int:
        return self._fd

    @property
    def buffer(self) -> Buffer:
        return self._buffer

    @property
    def stats(self) -> ConnectionStats:
        return self._stats

    @property
    def address(self) -> Address:
        return self._address

    def fd(self) -> int:
        """Raw socket handle, kept after close for diagnostics; -1 if no socket could be created"""
        return self._fd

    def peeraddr(self) -> str:
        return str(self._address)

    def localaddr(self) -> str:
        return self._local_addr

    def is_connected(self) -> bool:
        return self._state is ChannelState.CONNECTED

    def is_closed(self) -> bool:
        return self._state is ChannelState.CLOSED

    def connect(self) -> None:
        """Start a non-blocking connect; the outcome is reported via callbacks."""
        if self._state is not ChannelState.DISCONNECTED or self._connect_task is not None:
            raise RuntimeError(f"Channel fd={self._fd} cannot connect in state {self._state.name}")

        self._state = ChannelState.CONNECTING
        logger.debug(f"Connecting fd={self._fd} to {self.peeraddr()}")
        self._connect_task = self._loop.create_task(self._connect())

    async def _connect(self) -> None:
        if self._sock is None:
            self._connect_failed()
            return

        try:
            await self._loop.sock_connect(self._sock, self._address.sockaddr)
            await self._loop.create_connection(lambda: self, sock=self._sock)
        except OSError as e:
            if self._state is not ChannelState.CONNECTING:
                return
            self.last_error = ConnectFailure(
                f"Connect to {self.peeraddr()} failed: {e}",
                peeraddr=self.peeraddr(), errno=e.errno)
            self._connect_failed()

    def _connect_failed(self) -> None:
        logger.warning(f"{self.last_error} (fd={self._fd})")
        self._state = ChannelState.DISCONNECTED
        if self._sock is not None:
            self._sock.close()
        self._fire(self.on_close, self)

    # asyncio.Protocol interface

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        if self._state is not ChannelState.CONNECTING:
            transport.close()
            return

        self._transport = transport  # type: ignore[assignment]
        sockname = transport.get_extra_info('sockname')
        if sockname:
            self._local_addr = format_sockaddr(self._address.family, tuple(sockname))
        self._state = ChannelState.CONNECTED
        self._stats.connection_time = time.time()
        self._stats.update_activity()
        self._fire(self.on_connect, self)

    def data_received(self, data: bytes) -> None:
        if self._state is not ChannelState.CONNECTED:
            return

        try:
            self._buffer.append(data)
        except BufferError as e:
            logger.error(f"Channel fd={self._fd} receive buffer overflow: {e}")
            self.close()
            return

        self._stats.record_received(len(data))
        if self.on_message is None:
            self._buffer.clear()
            return
        self._fire(self.on_message, self, self._buffer)

    def eof_received(self) -> Optional[bool]:
        # Half-close is not supported, let the transport close
        return None

    def connection_lost(self, exc: Optional[Exception]) -> None:
        self._transport = None
        if self._state is ChannelState.CLOSED:
            return

        if exc is not None:
            logger.warning(f"Connection fd={self._fd} to {self.peeraddr()} lost: {exc}")
        else:
            logger.debug(f"Peer {self.peeraddr()} closed fd={self._fd}")
        self._state = ChannelState.DISCONNECTED
        self._fire(self.on_close, self)

    # Channel operations

    def write(self, data: Union[bytes, bytearray, memoryview, str]) -> bool:
        """Queue data for sending

        Args:
            data: Bytes to send; str is encoded as UTF-8

        Returns:
            True if the data was queued, False if the channel is not connected
        """
        if isinstance(data, str):
            data = data.encode('utf-8')

        if not self.is_connected() or self._transport is None or self._transport.is_closing():
            self.last_error = WriteOnClosedChannel(
                f"Write of {len(data)} bytes on {self._state.name.lower()} channel fd={self._fd} dropped",
                size=len(data))
            self._stats.dropped_writes += 1
            logger.warning(str(self.last_error))
            return False

        self._transport.write(data)
        self._stats.record_sent(len(data))
        return True

    def read(self, size: int = -1) -> bytes:
        """Consume bytes from the receive buffer (all when size < 0)"""
        if size < 0:
            return self._buffer.retrieve_all()
        return self._buffer.retrieve(size)

    def close(self) -> None:
        """Close the channel; idempotent

        Closing a connecting or connected channel notifies on_close once.
        """
        if self._state is ChannelState.CLOSED:
            return

        previous = self._state
        self._state = ChannelState.CLOSED
        if self._connect_task is not None and not self._connect_task.done():
            self._connect_task.cancel()
        if self._transport is not None:
            self._transport.close()
            self._transport = None
        elif self._sock is not None:
            self._sock.close()
        logger.debug(f"Channel fd={self._fd} closed")

        if previous in (ChannelState.CONNECTING, ChannelState.CONNECTED):
            self._fire(self.on_close, self)

    def _fire(self, callback: Optional[Callable[..., Any]], *args: Any) -> None:
        if callback is None:
            return
        try:
            callback(*args)
        except Exception as e:
            logger.error(f"Channel fd={self._fd} callback error: {e}")
