"""
TCP client with automatic reconnection.

The client owns at most one live Channel. Each connection attempt gets a
fresh Channel; events from a Channel that is no longer current are ignored.

State machine:
    IDLE -> CONNECTING -> CONNECTED -> DISCONNECTED -> CONNECTING (retry)
                                                    -> IDLE (stop)

A reconnect timer is armed only while DISCONNECTED, with reconnection
enabled, the retry budget not exhausted and stop() not called.
"""

from typing import Any, Callable, Dict, Optional

from loguru import logger

from ..core.exceptions import ConfigurationError
from ..event.loop import EventLoop
from ..event.timer import TimerID
from .address import Address, resolve_address
from .buffer import Buffer
from .channel import Channel
from .config import SocketOptions
from .reconnect import ReconnectSetting
from .state import ClientState, ClientStats

ConnectionCallback = Callable[[Channel], Any]
MessageCallback = Callable[[Channel, Buffer], Any]


class TcpClient:
    """
    Reconnecting TCP client driven by an EventLoop.

    Usage:
        loop = EventLoop()
        client = TcpClient(loop, "127.0.0.1", 1234)
        client.on_connection = handle_connection
        client.on_message = handle_message
        client.set_reconnect(ReconnectSetting(min_delay=1000, max_delay=10000))
        client.start()
        loop.run()
    """

    def __init__(
        self,
        loop: EventLoop,
        host: str = "127.0.0.1",
        port: int = 0,
        address: Optional[Address] = None,
        reconnect: Optional[ReconnectSetting] = None,
        socket_options: Optional[SocketOptions] = None,
        name: Optional[str] = None
    ):
        """
        Initialize TCP client.

        Args:
            loop: Event loop all callbacks run on
            host: Target host, resolved on start()
            port: Target port
            address: Pre-resolved address, takes precedence over host/port
            reconnect: Reconnect setting; reconnection is disabled when omitted
            socket_options: Options applied to each channel socket
            name: Client name for log messages
        """
        self._loop = loop
        self._host = host
        self._port = port
        self._address = address
        self._socket_options = socket_options or SocketOptions()
        self._name = name or "TcpClient"

        self.on_connection: Optional[ConnectionCallback] = None
        self.on_message: Optional[MessageCallback] = None

        self._state = ClientState.IDLE
        self._channel: Optional[Channel] = None
        self._reconn_setting: Optional[ReconnectSetting] = None
        self._reconnect_enabled = False
        self._reconnect_timer: Optional[TimerID] = None
        self._stopped = True
        self._stats = ClientStats()

        if reconnect is not None:
            self.set_reconnect(reconnect)

    def __repr__(self) -> str:
        return f"<TcpClient {self._name} target={self.target} state={self._state.name}>"

    @property
    def loop(self) -> EventLoop:
        return self._loop

    @property
    def state(self) -> ClientState:
        return self._state

    @property
    def channel(self) -> Optional[Channel]:
        """Current channel, None while idle"""
        return self._channel

    @property
    def address(self) -> Optional[Address]:
        return self._address

    @property
    def target(self) -> str:
        if self._address is not None:
            return str(self._address)
        return f"{self._host}:{self._port}"

    @property
    def reconnect_setting(self) -> Optional[ReconnectSetting]:
        """Snapshot of the reconnect state; the live object is not exposed"""
        if self._reconn_setting is None:
            return None
        return self._reconn_setting.copy()

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_timer is not None

    def is_connected(self) -> bool:
        return self._channel is not None and self._channel.is_connected()

    def is_reconnect(self) -> bool:
        return self._reconnect_enabled

    def set_reconnect(self, setting: Optional[ReconnectSetting]) -> None:
        """
        Enable, reconfigure or disable (None) reconnection.

        Policy fields are copied into the client's own setting; the current
        retry count and delay carry over.

        Raises:
            ConfigurationError: If the setting's bounds are invalid
        """
        if setting is None:
            self._reconnect_enabled = False
            self._cancel_reconnect_timer()
            logger.debug(f"{self._name}: reconnect disabled")
            return

        if not isinstance(setting, ReconnectSetting):
            raise ConfigurationError(
                f"Expected ReconnectSetting, got {type(setting).__name__}")
        setting.validate()

        if self._reconn_setting is None:
            self._reconn_setting = ReconnectSetting(
                min_delay=setting.min_delay,
                max_delay=setting.max_delay,
                delay_policy=setting.delay_policy,
                max_retry_cnt=setting.max_retry_cnt,
            )
        else:
            self._reconn_setting.update_policy(setting)
        self._reconnect_enabled = True
        logger.debug(f"{self._name}: reconnect set to {self._reconn_setting}")

        if self._state is ClientState.DISCONNECTED and self._reconnect_timer is None:
            self._schedule_reconnect()

    def start(self) -> None:
        """
        Begin connecting.

        No-op while connecting or connected. While a reconnect is pending the
        timer is cancelled and a new attempt starts immediately.

        Raises:
            AddressResolutionError: If the target cannot be resolved
        """
        if self._state in (ClientState.CONNECTING, ClientState.CONNECTED):
            logger.debug(f"{self._name}: start ignored in state {self._state.name}")
            return

        if self._address is None:
            self._address = resolve_address(self._host, self._port)

        self._stopped = False
        self._cancel_reconnect_timer()
        logger.info(f"{self._name}: starting, target {self._address}")
        self._start_connect()

    def stop(self) -> None:
        """Cancel any pending reconnect, close the channel and go idle."""
        if self._state is ClientState.IDLE:
            return

        self._stopped = True
        self._cancel_reconnect_timer()
        channel, self._channel = self._channel, None
        self._state = ClientState.IDLE
        if channel is not None:
            channel.close()
        logger.info(f"{self._name}: stopped")

    def get_stats(self) -> Dict[str, Any]:
        return {
            "name": self._name,
            "target": self.target,
            "state": self._state.name.lower(),
            "reconnect_enabled": self._reconnect_enabled,
            "reconnect_pending": self.reconnect_pending,
            "reconnect": self._reconn_setting.to_dict() if self._reconn_setting else None,
            "client": self._stats.to_dict(),
            "channel": self._channel.stats.to_dict() if self._channel else None,
        }

    def _start_connect(self) -> None:
        assert self._address is not None
        if self._channel is not None:
            # Previous attempt is dead, close() only releases its socket
            self._channel.close()
        channel = Channel(
            self._loop.loop,
            self._address,
            on_connect=self._handle_connect,
            on_message=self._handle_message,
            on_close=self._handle_close,
            socket_options=self._socket_options,
        )
        self._channel = channel
        self._state = ClientState.CONNECTING
        self._stats.connect_attempts += 1
        channel.connect()

    def _handle_connect(self, channel: Channel) -> None:
        if channel is not self._channel or self._stopped:
            return

        self._state = ClientState.CONNECTED
        self._stats.successful_connections += 1
        if self._reconn_setting is not None:
            self._reconn_setting.record_success()
        logger.info(f"{self._name}: connected to {channel.peeraddr()} fd={channel.fd()}")
        self._notify_connection(channel)

    def _handle_message(self, channel: Channel, buffer: Buffer) -> None:
        if channel is not self._channel or self._stopped:
            return

        if self.on_message is None:
            buffer.clear()
            return
        try:
            self.on_message(channel, buffer)
        except Exception as e:
            logger.error(f"{self._name}: on_message callback error: {e}")

    def _handle_close(self, channel: Channel) -> None:
        if channel is not self._channel or self._stopped:
            return

        if self._state is ClientState.CONNECTED:
            self._stats.disconnections += 1
            logger.info(f"{self._name}: disconnected from {channel.peeraddr()} fd={channel.fd()}")
        else:
            self._stats.failed_connections += 1
            logger.info(f"{self._name}: connect to {channel.peeraddr()} failed fd={channel.fd()}")
        self._state = ClientState.DISCONNECTED

        self._notify_connection(channel)

        # The callback may have restarted or stopped the client
        if channel is not self._channel or self._state is not ClientState.DISCONNECTED:
            return
        self._schedule_reconnect()

    def _notify_connection(self, channel: Channel) -> None:
        if self.on_connection is None:
            return
        try:
            self.on_connection(channel)
        except Exception as e:
            logger.error(f"{self._name}: on_connection callback error: {e}")

    def _schedule_reconnect(self) -> None:
        setting = self._reconn_setting
        if not self._reconnect_enabled or setting is None or self._stopped:
            return
        if not setting.should_retry():
            logger.warning(
                f"{self._name}: giving up after {setting.cur_retry_cnt} reconnect attempts")
            return

        delay = setting.record_failure()
        self._stats.reconnects_scheduled += 1
        self._reconnect_timer = self._loop.set_timeout(delay, self._on_reconnect_timer)
        logger.info(
            f"{self._name}: reconnect cnt={setting.cur_retry_cnt}, delay={delay}ms")

    def _on_reconnect_timer(self, timer_id: TimerID) -> None:
        if timer_id != self._reconnect_timer:
            return
        self._reconnect_timer = None
        if self._stopped or self._state is not ClientState.DISCONNECTED:
            return

        logger.debug(f"{self._name}: reconnecting to {self._address}")
        self._start_connect()

    def _cancel_reconnect_timer(self) -> None:
        if self._reconnect_timer is not None:
            self._loop.kill_timer(self._reconnect_timer)
            self._reconnect_timer = None
