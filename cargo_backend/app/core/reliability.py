"""
Reliability utilities.

Circuit breaker guarding the outbound notification channel, so a dead
Telegram endpoint does not stall every branch dispatch on timeouts.
"""

import time
import logging
from typing import Callable, Any
from cargo_backend.app.core.config import settings

logger = logging.getLogger("cargo.reliability")


class CircuitOpenError(Exception):
    pass


class CircuitBreaker:
    """
    Simple Circuit Breaker implementation.

    After ``failure_threshold`` consecutive failures the circuit opens and
    rejects calls for ``reset_timeout`` seconds, then lets a single trial
    call through (HALF_OPEN). A success closes it again.
    """
    def __init__(self, name: str = "default", failure_threshold: int = 5, reset_timeout: int = 60):
        self.name = name
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self.failures = 0
        self.last_failure_time = 0
        self.state = "CLOSED"  # CLOSED, OPEN, HALF_OPEN

    @property
    def is_open(self) -> bool:
        if self.state == "OPEN" and time.monotonic() - self.last_failure_time > self.reset_timeout:
            self.state = "HALF_OPEN"
        return self.state == "OPEN"

    async def call(self, func: Callable, *args, **kwargs) -> Any:
        if self.is_open:
            raise CircuitOpenError(f"Circuit '{self.name}' is OPEN")

        try:
            result = await func(*args, **kwargs)
        except Exception:
            self.record_failure()
            raise
        self.record_success()
        return result

    def record_failure(self):
        self.failures += 1
        self.last_failure_time = time.monotonic()
        if self.state == "HALF_OPEN" or self.failures >= self.failure_threshold:
            if self.state != "OPEN":
                logger.warning("Circuit '%s' opened after %d failures", self.name, self.failures)
            self.state = "OPEN"

    def record_success(self):
        self.reset_state()

    def reset_state(self):
        self.failures = 0
        self.state = "CLOSED"


# Shared by every send to the Telegram channel
notification_circuit_breaker = CircuitBreaker(
    name="telegram",
    failure_threshold=settings.notification_failure_threshold,
    reset_timeout=settings.notification_reset_timeout,
)
