from .address import Address, resolve_address
from .buffer import Buffer
from .channel import Channel
from .config import SocketOptions
from .reconnect import DelayPolicy, ReconnectSetting, next_delay
from .state import ChannelState, ClientState, ConnectionStats, ClientStats
from .tcp_client import TcpClient

__all__ = [
    'Address',
    'resolve_address',
    'Buffer',
    'Channel',
    'SocketOptions',
    'DelayPolicy',
    'ReconnectSetting',
    'next_delay',
    'ChannelState',
    'ClientState',
    'ConnectionStats',
    'ClientStats',
    'TcpClient',
]
