from enum import Enum, auto
import time
from dataclasses import dataclass, field
from typing import Dict, Any, Optional


class ChannelState(Enum):
    """Channel state enumeration"""
    DISCONNECTED = auto()  # Not connected (initial, or after failure/peer close)
    CONNECTING = auto()    # Non-blocking connect in progress
    CONNECTED = auto()     # Connection is established
    CLOSED = auto()        # Closed locally, handle released


class ClientState(Enum):
    """TCP client state enumeration"""
    IDLE = auto()          # Not started, or stopped
    CONNECTING = auto()    # Connection is being established
    CONNECTED = auto()     # Connection is established
    DISCONNECTED = auto()  # Connection lost or refused


@dataclass
class ConnectionStats:
    """Per-channel statistics"""
    created_at: float = field(default_factory=time.time)
    connection_time: Optional[float] = None
    last_activity: float = field(default_factory=time.time)
    bytes_sent: int = 0
    bytes_received: int = 0
    messages_sent: int = 0
    messages_received: int = 0
    dropped_writes: int = 0

    def update_activity(self) -> None:
        """Update the most recent activity time"""
        self.last_activity = time.time()

    def record_sent(self, size: int) -> None:
        self.bytes_sent += size
        self.messages_sent += 1
        self.update_activity()

    def record_received(self, size: int) -> None:
        self.bytes_received += size
        self.messages_received += 1
        self.update_activity()

    def get_idle_time(self) -> float:
        """Get idle time (seconds)"""
        return time.time() - self.last_activity

    def get_uptime(self) -> Optional[float]:
        """Get connection uptime (seconds)"""
        if self.connection_time is None:
            return None
        return time.time() - self.connection_time

    def to_dict(self) -> Dict[str, Any]:
        """Convert statistics to dictionary"""
        return {
            "created_at": self.created_at,
            "connection_time": self.connection_time,
            "last_activity": self.last_activity,
            "bytes_sent": self.bytes_sent,
            "bytes_received": self.bytes_received,
            "messages_sent": self.messages_sent,
            "messages_received": self.messages_received,
            "dropped_writes": self.dropped_writes,
            "idle_time": self.get_idle_time(),
            "uptime": self.get_uptime(),
        }


@dataclass
class ClientStats:
    """Lifetime statistics of one TCP client"""
    connect_attempts: int = 0
    successful_connections: int = 0
    failed_connections: int = 0
    disconnections: int = 0
    reconnects_scheduled: int = 0
    start_time: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        """Convert statistics to dictionary"""
        return {
            "connect_attempts": self.connect_attempts,
            "successful_connections": self.successful_connections,
            "failed_connections": self.failed_connections,
            "disconnections": self.disconnections,
            "reconnects_scheduled": self.reconnects_scheduled,
            "start_time": self.start_time,
            "uptime": time.time() - self.start_time,
        }
