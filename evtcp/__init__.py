"""
evtcp - TCP client runtime with automatic reconnection.

This package provides a reconnecting TCP client driven by a single-threaded
event loop with millisecond timers, in the callback style of classic
event-loop networking libraries.
"""

__version__ = "0.1.0"

# Public API exports
from .core.exceptions import (
    EvTcpError,
    ConfigurationError,
    AddressResolutionError,
    ConnectFailure,
    WriteOnClosedChannel,
)
from .event import EventLoop, TimerID, TimerScheduler
from .net import (
    Address,
    Buffer,
    Channel,
    ChannelState,
    ClientState,
    DelayPolicy,
    ReconnectSetting,
    SocketOptions,
    TcpClient,
    next_delay,
    resolve_address,
)

__all__ = [
    "EvTcpError",
    "ConfigurationError",
    "AddressResolutionError",
    "ConnectFailure",
    "WriteOnClosedChannel",
    "EventLoop",
    "TimerID",
    "TimerScheduler",
    "Address",
    "Buffer",
    "Channel",
    "ChannelState",
    "ClientState",
    "DelayPolicy",
    "ReconnectSetting",
    "SocketOptions",
    "TcpClient",
    "next_delay",
    "resolve_address",
]
