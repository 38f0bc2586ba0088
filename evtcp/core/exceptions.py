"""
Exception hierarchy for the evtcp client runtime.

Only configuration problems are raised to the caller. Connection failures
and writes on a dead channel are recorded on the channel and logged, the
reconnect loop handles them internally.
"""

from typing import Optional


class EvTcpError(Exception):
    """Base exception class for all evtcp errors"""
    pass


class ConfigurationError(EvTcpError, ValueError):
    """Exception raised for invalid configuration values"""
    pass


class AddressResolutionError(ConfigurationError):
    """Exception raised when a target address cannot be resolved"""

    def __init__(self, message: str, host: Optional[str] = None, port: Optional[int] = None):
        self.host = host
        self.port = port
        super().__init__(message)


class ConnectFailure(EvTcpError):
    """Connection attempt failure, recorded on the channel and never raised"""

    def __init__(self, message: str, peeraddr: Optional[str] = None, errno: Optional[int] = None):
        self.peeraddr = peeraddr
        self.errno = errno
        super().__init__(message)


class WriteOnClosedChannel(EvTcpError):
    """Write dropped because the channel was not connected"""

    def __init__(self, message: str, size: int = 0):
        self.size = size
        super().__init__(message)
