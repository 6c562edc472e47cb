"""Circuit breaker for the publication service.

Hydration fans out to many concurrent requests. When the service is down,
the breaker turns the flood of transport errors into a single systemic
``ProviderUnavailableError`` so that aggregation can fail once and keep the
previous suggestions.

CLOSED -> OPEN after ``failure_threshold`` consecutive failures,
OPEN -> HALF_OPEN once ``cooldown_seconds`` have passed since the last
failure, HALF_OPEN -> CLOSED after ``success_threshold`` successes, and
HALF_OPEN -> OPEN on any failure.
"""

import time
from enum import Enum
from typing import Optional

import structlog
from pydantic import BaseModel

from pubsuggest.models.config import CircuitBreakerConfig
from pubsuggest.utils.exceptions import ProviderUnavailableError

logger = structlog.get_logger()


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitStats(BaseModel):
    """Counters of one breaker"""

    name: str
    state: str
    consecutive_failures: int
    total_successes: int
    total_failures: int
    times_opened: int
    cooldown_remaining: float


class CircuitBreaker:
    """
    Failure counter guarding one provider.

    Used from a single event loop: every method runs to completion without
    awaiting. A disabled configuration counts failures but never opens.
    """

    def __init__(self, name: str, config: Optional[CircuitBreakerConfig] = None):
        self.name = name
        self.config = config or CircuitBreakerConfig()

        self._state = CircuitState.CLOSED
        self._consecutive_failures = 0
        self._probe_successes = 0
        self._total_successes = 0
        self._total_failures = 0
        self._times_opened = 0
        self._opened_at: Optional[float] = None

    @property
    def state(self) -> CircuitState:
        if self._state is CircuitState.OPEN and self._cooldown_remaining() == 0:
            self._transition(CircuitState.HALF_OPEN)
        return self._state

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    def _cooldown_remaining(self) -> float:
        if self._opened_at is None:
            return 0.0
        elapsed = time.monotonic() - self._opened_at
        return max(0.0, self.config.cooldown_seconds - elapsed)

    def _transition(self, state: CircuitState) -> None:
        previous, self._state = self._state, state
        self._probe_successes = 0
        if state is CircuitState.OPEN:
            self._times_opened += 1
            logger.warning(
                "circuit_opened",
                provider=self.name,
                failures=self._consecutive_failures,
                cooldown_seconds=self.config.cooldown_seconds,
            )
        else:
            logger.info(
                "circuit_state_changed",
                provider=self.name,
                previous=previous.value,
                state=state.value,
            )

    def record_success(self) -> None:
        self._total_successes += 1
        self._consecutive_failures = 0
        if self.state is CircuitState.HALF_OPEN:
            self._probe_successes += 1
            if self._probe_successes >= self.config.success_threshold:
                self._opened_at = None
                self._transition(CircuitState.CLOSED)

    def record_failure(self) -> None:
        self._total_failures += 1
        self._consecutive_failures += 1
        if not self.config.enabled:
            return

        state = self.state
        if state is CircuitState.HALF_OPEN or (
            state is CircuitState.CLOSED
            and self._consecutive_failures >= self.config.failure_threshold
        ):
            self._opened_at = time.monotonic()
            self._transition(CircuitState.OPEN)
        elif state is CircuitState.OPEN:
            # Late failures of requests issued before opening extend the cooldown
            self._opened_at = time.monotonic()

    def allow_request(self) -> bool:
        return self.state is not CircuitState.OPEN

    def check_or_raise(self) -> None:
        """
        Raises:
            ProviderUnavailableError: If the circuit is open
        """
        if not self.allow_request():
            raise ProviderUnavailableError(
                f"Circuit breaker '{self.name}' is OPEN, "
                f"retry in {self._cooldown_remaining():.0f}s"
            )

    def reset(self) -> None:
        self._consecutive_failures = 0
        self._opened_at = None
        if self._state is not CircuitState.CLOSED:
            self._transition(CircuitState.CLOSED)

    def get_stats(self) -> CircuitStats:
        state = self.state
        return CircuitStats(
            name=self.name,
            state=state.value,
            consecutive_failures=self._consecutive_failures,
            total_successes=self._total_successes,
            total_failures=self._total_failures,
            times_opened=self._times_opened,
            cooldown_remaining=(
                self._cooldown_remaining() if state is CircuitState.OPEN else 0.0
            ),
        )
