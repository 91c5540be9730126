"""
Failure Injection Tests.

Validates resilience against component failures.
"""

import pytest
from cargo_backend.app.core.reliability import CircuitBreaker, CircuitOpenError


async def failing_func():
    raise ValueError("Boom")


async def working_func():
    return "ok"


def elapse(cb: CircuitBreaker, seconds: float):
    """Pretend the last failure happened ``seconds`` earlier."""
    cb.last_failure_time -= seconds


@pytest.mark.asyncio
async def test_circuit_breaker_activates():
    """Test that circuit breaker opens after threshold failures."""
    cb = CircuitBreaker(failure_threshold=2, reset_timeout=1)

    for _ in range(2):
        with pytest.raises(ValueError):
            await cb.call(failing_func)

    with pytest.raises(CircuitOpenError):
        await cb.call(working_func)


@pytest.mark.asyncio
async def test_circuit_breaker_half_open_recovery():
    """After the reset timeout one trial call is let through and closes the circuit."""
    cb = CircuitBreaker(failure_threshold=1, reset_timeout=30)

    with pytest.raises(ValueError):
        await cb.call(failing_func)
    assert cb.is_open

    elapse(cb, 31)
    assert await cb.call(working_func) == "ok"
    assert cb.state == "CLOSED"
    assert cb.failures == 0


@pytest.mark.asyncio
async def test_half_open_failure_reopens():
    cb = CircuitBreaker(failure_threshold=3, reset_timeout=10)
    for _ in range(3):
        with pytest.raises(ValueError):
            await cb.call(failing_func)

    elapse(cb, 11)
    with pytest.raises(ValueError):
        await cb.call(failing_func)
    assert cb.state == "OPEN"


@pytest.mark.asyncio
async def test_success_resets_failure_count():
    cb = CircuitBreaker(failure_threshold=2, reset_timeout=60)

    with pytest.raises(ValueError):
        await cb.call(failing_func)
    await cb.call(working_func)
    with pytest.raises(ValueError):
        await cb.call(failing_func)

    assert cb.state == "CLOSED"
