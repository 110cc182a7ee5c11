# arbwatch/reconnect.py
import logging
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, List, Optional

from .models import ConnectionState

DEFAULT_RECONNECT_DELAY = 5.0
HISTORY_LIMIT = 32

_ALLOWED = {
    ConnectionState.DISCONNECTED: {ConnectionState.CONNECTING, ConnectionState.STOPPED},
    ConnectionState.CONNECTING: {ConnectionState.CONNECTED, ConnectionState.DISCONNECTED, ConnectionState.STOPPED},
    ConnectionState.CONNECTED: {ConnectionState.DISCONNECTED, ConnectionState.STOPPED},
    ConnectionState.STOPPED: set(),
}


class ReconnectPolicy:
    """How long to wait before the next connection attempt."""
    def delay(self, attempt: int) -> float:
        raise NotImplementedError


@dataclass
class FixedDelayPolicy(ReconnectPolicy):
    """Retry forever, always after the same delay."""
    seconds: float = DEFAULT_RECONNECT_DELAY

    def delay(self, attempt: int) -> float:
        return self.seconds


@dataclass
class ExponentialBackoffPolicy(ReconnectPolicy):
    """Doubling delay, capped at max_seconds. Still retries forever."""
    base_seconds: float = 1.0
    max_seconds: float = 60.0
    multiplier: float = 2.0

    def delay(self, attempt: int) -> float:
        # Stops multiplying once capped; attempt is unbounded during long outages
        delay = self.base_seconds
        for _ in range(max(attempt - 1, 0)):
            if delay <= 0 or delay >= self.max_seconds or self.multiplier <= 1:
                break
            delay *= self.multiplier
        return min(delay, self.max_seconds)


def build_policy(strategy: str, delay_seconds: float = DEFAULT_RECONNECT_DELAY,
                 max_delay_seconds: float = 60.0) -> ReconnectPolicy:
    if strategy == "fixed":
        return FixedDelayPolicy(delay_seconds)
    if strategy == "exponential":
        return ExponentialBackoffPolicy(base_seconds=delay_seconds, max_seconds=max_delay_seconds)
    raise ValueError(f"Unknown reconnect strategy: {strategy!r}")


class ConnectionStateMachine:
    """
    DISCONNECTED -> CONNECTING -> CONNECTED -> DISCONNECTED -> CONNECTING ...
    The only way out of the cycle is stop(). The policy decides the single
    timed transition (DISCONNECTED -> CONNECTING); nothing else here sleeps.
    """
    def __init__(self, name: str, policy: Optional[ReconnectPolicy] = None,
                 logger: Optional[logging.Logger] = None):
        self.name = name
        self.policy = policy or FixedDelayPolicy()
        self.logger = logger or logging.getLogger(__name__)
        self.state = ConnectionState.DISCONNECTED
        self.failures = 0  # consecutive attempts without reaching CONNECTED
        # Most recent transitions only
        self.history: Deque[ConnectionState] = deque([self.state], maxlen=HISTORY_LIMIT)
        self._listeners: List[Callable[[ConnectionState, ConnectionState], None]] = []

    def subscribe(self, listener: Callable[[ConnectionState, ConnectionState], None]) -> None:
        self._listeners.append(listener)

    @property
    def stopped(self) -> bool:
        return self.state is ConnectionState.STOPPED

    def _move(self, new: ConnectionState) -> bool:
        old = self.state
        if new not in _ALLOWED[old]:
            self.logger.debug(f"[{self.name}] ignoring transition {old.value} -> {new.value}")
            return False
        self.state = new
        self.history.append(new)
        for listener in self._listeners:
            listener(old, new)
        return True

    def connecting(self) -> bool:
        return self._move(ConnectionState.CONNECTING)

    def connected(self) -> bool:
        if self._move(ConnectionState.CONNECTED):
            self.failures = 0
            return True
        return False

    def disconnected(self) -> bool:
        if self._move(ConnectionState.DISCONNECTED):
            self.failures += 1
            return True
        return False

    def stop(self) -> bool:
        return self._move(ConnectionState.STOPPED)

    def next_delay(self) -> float:
        return self.policy.delay(max(self.failures, 1))
