"""
Reconnect policy: delay computation and per-client retry state.

Delays are integer milliseconds. With the exponential policy,
``min_delay=1000`` and ``max_delay=10000`` successive reconnect delays are
1s, 2s, 4s, 8s, 10s, 10s, ...
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, Optional, Union

from ..core.exceptions import ConfigurationError


class DelayPolicy(IntEnum):
    """Growth policy for the delay between reconnect attempts"""
    FIXED = 0        # Always min_delay
    LINEAR = 1       # min_delay grows by min_delay per attempt
    EXPONENTIAL = 2  # min_delay doubles per attempt

    @classmethod
    def parse(cls, value: Union[str, int, "DelayPolicy"]) -> "DelayPolicy":
        """Parse a policy from its name (case-insensitive) or numeric value"""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            name = value.strip().upper()
            if name.isdigit():
                return cls(int(name))
            try:
                return cls[name]
            except KeyError:
                raise ConfigurationError(f"Unknown delay policy: {value}")
        try:
            return cls(value)
        except ValueError:
            raise ConfigurationError(f"Unknown delay policy: {value}")


def next_delay(policy: DelayPolicy, attempt: int, min_delay: int, max_delay: int) -> int:
    """Calculate the delay before the next reconnect attempt

    Args:
        policy: Delay growth policy
        attempt: Number of failed attempts so far (0-based)
        min_delay: Lower bound in milliseconds
        max_delay: Upper bound in milliseconds

    Returns:
        Delay in milliseconds, within [min_delay, max_delay]
    """
    if attempt < 0:
        raise ValueError(f"Attempt must be non-negative, got {attempt}")

    if policy == DelayPolicy.FIXED:
        delay = min_delay
    elif policy == DelayPolicy.LINEAR:
        delay = min_delay + attempt * min_delay
    else:
        # Past this point the doubled delay is always above the cap
        if attempt >= max_delay.bit_length():
            return max_delay
        delay = min_delay * (2 ** attempt)

    return max(min_delay, min(delay, max_delay))


@dataclass
class ReconnectSetting:
    """Reconnect configuration plus the retry state it drives.

    Usage:
        setting = ReconnectSetting(min_delay=1000, max_delay=10000,
                                   delay_policy=DelayPolicy.EXPONENTIAL)
        client.set_reconnect(setting)
    """
    min_delay: int = 1000
    max_delay: int = 60000
    delay_policy: DelayPolicy = DelayPolicy.EXPONENTIAL
    max_retry_cnt: Optional[int] = None   # None retries forever

    # Mutable state (not part of __init__ comparison)
    cur_retry_cnt: int = field(default=0, compare=False)
    cur_delay: int = field(default=0, compare=False)

    def __post_init__(self) -> None:
        self.delay_policy = DelayPolicy.parse(self.delay_policy)
        self.validate()
        self.cur_delay = self._clamp(self.cur_delay)

    def validate(self) -> bool:
        """Validate the delay bounds

        Returns:
            True if the setting is valid

        Raises:
            ConfigurationError: If the setting is invalid
        """
        if self.min_delay <= 0:
            raise ConfigurationError(f"min_delay must be positive, got {self.min_delay}")
        if self.max_delay <= 0:
            raise ConfigurationError(f"max_delay must be positive, got {self.max_delay}")
        if self.min_delay > self.max_delay:
            raise ConfigurationError(
                f"min_delay ({self.min_delay}) must not exceed max_delay ({self.max_delay})")
        if self.max_retry_cnt is not None and self.max_retry_cnt < 0:
            raise ConfigurationError(
                f"max_retry_cnt must be non-negative, got {self.max_retry_cnt}")
        if self.cur_retry_cnt < 0:
            raise ConfigurationError(
                f"cur_retry_cnt must be non-negative, got {self.cur_retry_cnt}")
        return True

    def _clamp(self, delay: int) -> int:
        return max(self.min_delay, min(delay, self.max_delay))

    def next_delay(self, attempt: Optional[int] = None) -> int:
        """Delay for the given attempt, defaulting to the current retry count"""
        if attempt is None:
            attempt = self.cur_retry_cnt
        return next_delay(self.delay_policy, attempt, self.min_delay, self.max_delay)

    def should_retry(self) -> bool:
        """Check whether the retry budget allows another attempt"""
        return self.max_retry_cnt is None or self.cur_retry_cnt < self.max_retry_cnt

    def record_failure(self) -> int:
        """Compute the delay for the next attempt and count the failure

        Returns:
            The new cur_delay in milliseconds
        """
        self.cur_delay = self.next_delay(self.cur_retry_cnt)
        self.cur_retry_cnt += 1
        return self.cur_delay

    def record_success(self) -> None:
        """Reset retry state after a successful connection"""
        self.cur_retry_cnt = 0
        self.cur_delay = self.min_delay

    def update_policy(self, other: "ReconnectSetting") -> None:
        """Copy policy fields from another setting, keeping the retry state"""
        self.min_delay = other.min_delay
        self.max_delay = other.max_delay
        self.delay_policy = other.delay_policy
        self.max_retry_cnt = other.max_retry_cnt
        self.validate()
        self.cur_delay = self._clamp(self.cur_delay)

    def copy(self) -> "ReconnectSetting":
        return ReconnectSetting(
            min_delay=self.min_delay,
            max_delay=self.max_delay,
            delay_policy=self.delay_policy,
            max_retry_cnt=self.max_retry_cnt,
            cur_retry_cnt=self.cur_retry_cnt,
            cur_delay=self.cur_delay,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "min_delay": self.min_delay,
            "max_delay": self.max_delay,
            "delay_policy": self.delay_policy.name.lower(),
            "max_retry_cnt": self.max_retry_cnt,
            "cur_retry_cnt": self.cur_retry_cnt,
            "cur_delay": self.cur_delay,
        }
