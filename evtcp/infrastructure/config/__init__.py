"""
Configuration management for the evtcp client.
"""

from .loader import ConfigLoader
from .models import ClientAppConfig, TCPConfig, ReconnectConfig, LoggingConfig

__all__ = [
    "ConfigLoader",
    "ClientAppConfig",
    "TCPConfig",
    "ReconnectConfig",
    "LoggingConfig",
]
