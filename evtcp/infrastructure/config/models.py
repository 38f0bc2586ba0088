"""
Configuration models and data structures.

This module defines the configuration models used by the client runtime and
the command line tool, and converts them into runtime objects.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional

from ...core.exceptions import ConfigurationError
from ...net.config import SocketOptions
from ...net.reconnect import DelayPolicy, ReconnectSetting


@dataclass
class TCPConfig:
    """TCP client configuration."""
    host: str = "127.0.0.1"
    port: int = 8080
    nodelay: bool = True
    keepalive: bool = True
    recvbuf_size: Optional[int] = None
    sendbuf_size: Optional[int] = None
    max_buffer_size: int = 16 * 1024 * 1024

    def to_socket_options(self) -> SocketOptions:
        return SocketOptions(
            nodelay=self.nodelay,
            keepalive=self.keepalive,
            recvbuf_size=self.recvbuf_size,
            sendbuf_size=self.sendbuf_size,
            max_buffer_size=self.max_buffer_size,
        )


@dataclass
class ReconnectConfig:
    """Reconnect policy configuration (delays in milliseconds)."""
    enabled: bool = True
    min_delay: int = 1000
    max_delay: int = 10000
    delay_policy: str = "exponential"
    max_retry_cnt: Optional[int] = None

    def to_setting(self) -> Optional[ReconnectSetting]:
        """Build the runtime setting, None when reconnection is disabled."""
        if not self.enabled:
            return None
        return ReconnectSetting(
            min_delay=self.min_delay,
            max_delay=self.max_delay,
            delay_policy=DelayPolicy.parse(self.delay_policy),
            max_retry_cnt=self.max_retry_cnt,
        )


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    log_directory: str = "logs"
    log_file: str = "evtcp.log"
    max_file_size: str = "10 MB"
    backup_count: int = 5
    console_enabled: bool = True
    file_enabled: bool = False


@dataclass
class ClientAppConfig:
    """Main configuration of the evtcp command line client."""

    # Basic settings
    name: str = "evtcp"
    version: str = "0.1.0"
    debug: bool = False

    # Periodic write interval of the demo client (milliseconds)
    send_interval: int = 3000

    # Component configurations
    tcp: TCPConfig = field(default_factory=TCPConfig)
    reconnect: ReconnectConfig = field(default_factory=ReconnectConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    config_file_path: Optional[str] = None

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        self.validate()

    def validate(self) -> None:
        """
        Check every section, e.g. after overriding fields in place.

        Raises:
            ConfigurationError: If a value is out of range
        """
        self._validate_ports()
        self._validate_intervals()
        self._validate_reconnect()

    def _validate_ports(self) -> None:
        if not (1 <= self.tcp.port <= 65535):
            raise ConfigurationError(
                f"TCP port must be between 1 and 65535, got {self.tcp.port}")

    def _validate_intervals(self) -> None:
        if self.send_interval <= 0:
            raise ConfigurationError(
                f"send_interval must be positive, got {self.send_interval}")
        if self.tcp.max_buffer_size <= 0:
            raise ConfigurationError(
                f"max_buffer_size must be positive, got {self.tcp.max_buffer_size}")

    def _validate_reconnect(self) -> None:
        # Building the setting runs its bound checks
        ReconnectSetting(
            min_delay=self.reconnect.min_delay,
            max_delay=self.reconnect.max_delay,
            delay_policy=DelayPolicy.parse(self.reconnect.delay_policy),
            max_retry_cnt=self.reconnect.max_retry_cnt,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ClientAppConfig':
        """Create configuration from dictionary."""
        try:
            tcp_config = TCPConfig(**data.get('tcp', {}))
            reconnect_config = ReconnectConfig(**data.get('reconnect', {}))
            logging_config = LoggingConfig(**data.get('logging', {}))
        except TypeError as e:
            raise ConfigurationError(f"Invalid configuration section: {e}")

        return cls(
            name=data.get('name', 'evtcp'),
            version=data.get('version', '0.1.0'),
            debug=data.get('debug', False),
            send_interval=data.get('send_interval', 3000),
            tcp=tcp_config,
            reconnect=reconnect_config,
            logging=logging_config,
            config_file_path=data.get('config_file_path'),
        )
