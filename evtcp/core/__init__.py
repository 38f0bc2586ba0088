"""
Core definitions shared by the event loop and networking layers.
"""

from .exceptions import (
    EvTcpError,
    ConfigurationError,
    AddressResolutionError,
    ConnectFailure,
    WriteOnClosedChannel,
)

__all__ = [
    "EvTcpError",
    "ConfigurationError",
    "AddressResolutionError",
    "ConnectFailure",
    "WriteOnClosedChannel",
]
