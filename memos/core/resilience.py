"""
Resilience Infrastructure.

Circuit breaker for the remote replica. Sync never retries on its own: a
failed drain leaves the queue intact and the next trigger (reconnect, timer,
manual sync) tries again. The breaker stops a dead endpoint from being
called on every autosave in between.

Usage:
    from memos.core.resilience import create_circuit_breaker

    breaker = create_circuit_breaker("remote_replica", fail_max=5, timeout_duration=60)
    response = await breaker.call_async(client.post, url, json=body)

State changes are logged with a ``resilience_event`` field:

    jq 'select(.resilience_event != null)' logs/system.jsonl
"""

from datetime import timedelta
from typing import Any

import aiobreaker

from memos.core.logging import get_logger

logger = get_logger(__name__)

_EVENTS = {
    "open": "circuit_breaker_opened",
    "half-open": "circuit_breaker_half_open",
    "closed": "circuit_breaker_closed",
}


def _state_name(state: Any) -> str:
    """'open', 'half-open' or 'closed' from a state object, enum or string."""
    raw = str(getattr(state, "state", state)).lower()
    return raw.rsplit(".", 1)[-1].replace("_", "-")


class ResilienceLogger(aiobreaker.CircuitBreakerListener):
    """Logs breaker transitions and recorded failures for one dependency."""

    def __init__(self, dependency: str) -> None:
        self.dependency = dependency

    def state_change(self, cb: aiobreaker.CircuitBreaker, old_state: Any, new_state: Any) -> None:
        name = _state_name(new_state)
        log = logger.error if name == "open" else logger.info
        log(
            f"Sync endpoint {self.dependency} circuit {_state_name(old_state)} -> {name}",
            source="sync",
            extra={
                "resilience_event": _EVENTS.get(name, f"circuit_breaker_{name}"),
                "dependency": self.dependency,
                "failure_count": cb.fail_counter,
            },
        )

    def failure(self, cb: aiobreaker.CircuitBreaker, exception: Exception) -> None:
        logger.warning(
            f"Sync endpoint {self.dependency} call failed",
            source="sync",
            extra={
                "resilience_event": "circuit_breaker_failure",
                "dependency": self.dependency,
                "failure_count": cb.fail_counter,
                "error": str(exception),
            },
        )


def create_circuit_breaker(
    dependency: str,
    fail_max: int = 5,
    timeout_duration: int = 60,
) -> aiobreaker.CircuitBreaker:
    """
    Create a logged circuit breaker.

    Args:
        dependency: Name used in log records
        fail_max: Consecutive failures before the circuit opens
        timeout_duration: Seconds the circuit stays open before a trial call
    """
    return aiobreaker.CircuitBreaker(
        fail_max=fail_max,
        timeout_duration=timedelta(seconds=timeout_duration),
        listeners=[ResilienceLogger(dependency)],
    )
