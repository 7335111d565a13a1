"""Circuit breaker for outbound provider calls with Redis-backed state.

Guards calls to the payment gateway and the SMTP server so a provider
outage fails fast instead of tying up request handlers. State lives in Redis
so every worker process sees the same open/closed decision.

Configuration:
    - fail_max: consecutive failures to open the circuit
    - reset_timeout: seconds before a trial call is allowed (half-open)
    - success_threshold: half-open successes needed to close again
"""

import asyncio
import time
from enum import Enum
from typing import Awaitable, Callable, ParamSpec, TypeVar

import pybreaker
import redis
import structlog

logger = structlog.get_logger()

P = ParamSpec("P")
T = TypeVar("T")


class CircuitState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


_STATE_FROM_PYBREAKER = {
    pybreaker.STATE_CLOSED: CircuitState.CLOSED,
    pybreaker.STATE_OPEN: CircuitState.OPEN,
    pybreaker.STATE_HALF_OPEN: CircuitState.HALF_OPEN,
}


class CircuitBreakerError(Exception):
    """Raised instead of calling the provider while the circuit is open."""

    def __init__(self, circuit_name: str, state: CircuitState):
        self.circuit_name = circuit_name
        self.state = state
        super().__init__(f"Circuit '{circuit_name}' is {state.value}")


def _decode(value: object) -> str:
    return value.decode("utf-8") if isinstance(value, bytes) else str(value)


class RedisCircuitBreakerStorage(pybreaker.CircuitBreakerStorage):
    """pybreaker storage persisted in Redis under ``circuit_breaker:<name>:*``."""

    BASE_NAME = "circuit_breaker"

    def __init__(self, name: str, redis_client: redis.Redis):
        self._name = name
        self._redis = redis_client
        self._state_key = f"{self.BASE_NAME}:{name}:state"
        self._counter_key = f"{self.BASE_NAME}:{name}:counter"
        self._opened_at_key = f"{self.BASE_NAME}:{name}:opened_at"

    @property
    def name(self) -> str:
        return self._name

    @property
    def state(self) -> str:
        state = self._redis.get(self._state_key)
        if state is None:
            return pybreaker.STATE_CLOSED
        return _decode(state)

    @state.setter
    def state(self, state: str) -> None:
        self._redis.set(self._state_key, state)

    @property
    def counter(self) -> int:
        counter = self._redis.get(self._counter_key)
        return 0 if counter is None else int(_decode(counter))

    def increment_counter(self) -> int:
        return int(self._redis.incr(self._counter_key))

    def reset_counter(self) -> None:
        self._redis.set(self._counter_key, 0)

    @property
    def opened_at(self) -> float | None:
        opened_at = self._redis.get(self._opened_at_key)
        return None if opened_at is None else float(_decode(opened_at))

    @opened_at.setter
    def opened_at(self, value: float | None) -> None:
        if value is None:
            self._redis.delete(self._opened_at_key)
        else:
            self._redis.set(self._opened_at_key, value)

    def reset(self) -> None:
        """Forget all state for this circuit."""
        self._redis.delete(self._state_key, self._counter_key, self._opened_at_key)


class CircuitBreaker:
    """Async circuit breaker around a single provider.

    In the closed state the counter tracks consecutive failures; in the
    half-open state it tracks consecutive successes.

    Usage:
        breaker = CircuitBreaker("stripe", redis_client)
        intent = await breaker.call(asyncio.to_thread, client.create, params)
    """

    DEFAULT_FAIL_MAX = 5
    DEFAULT_RESET_TIMEOUT = 30
    DEFAULT_SUCCESS_THRESHOLD = 2

    def __init__(
        self,
        name: str,
        redis_client: redis.Redis,
        fail_max: int = DEFAULT_FAIL_MAX,
        reset_timeout: int = DEFAULT_RESET_TIMEOUT,
        success_threshold: int = DEFAULT_SUCCESS_THRESHOLD,
        excluded_exceptions: tuple[type[BaseException], ...] = (),
    ):
        """Initialize circuit breaker with Redis storage.

        Args:
            name: Unique name, also the Redis key namespace
            redis_client: Synchronous Redis client
            fail_max: Consecutive failures to open circuit
            reset_timeout: Seconds before half-open state
            success_threshold: Successes in half-open to close
            excluded_exceptions: Errors that are the caller's fault (bad
                input, declined card) and must not count as failures
        """
        self.name = name
        self.fail_max = fail_max
        self.reset_timeout = reset_timeout
        self.success_threshold = success_threshold
        self.excluded_exceptions = excluded_exceptions
        self._storage = RedisCircuitBreakerStorage(name, redis_client)

    async def _read(self) -> tuple[CircuitState, int, float | None]:
        def _load() -> tuple[str, int, float | None]:
            return self._storage.state, self._storage.counter, self._storage.opened_at

        state, counter, opened_at = await asyncio.to_thread(_load)
        return _STATE_FROM_PYBREAKER.get(state, CircuitState.CLOSED), counter, opened_at

    async def state(self) -> CircuitState:
        """Return the current circuit state."""
        state, _, _ = await self._read()
        return state

    async def failure_count(self) -> int:
        """Return the current counter value."""
        _, counter, _ = await self._read()
        return counter

    async def _transition(self, state: str, opened_at: float | None) -> None:
        def _write() -> None:
            self._storage.state = state
            self._storage.reset_counter()
            self._storage.opened_at = opened_at

        await asyncio.to_thread(_write)
        logger.info("circuit_breaker_state_change", circuit=self.name, new_state=state)

    async def call(
        self,
        func: Callable[P, Awaitable[T]],
        *args: P.args,
        **kwargs: P.kwargs,
    ) -> T:
        """Call an async function through the circuit breaker.

        Raises:
            CircuitBreakerError: If the circuit is open
            Exception: Any exception from the wrapped function
        """
        state, _, opened_at = await self._read()
        if state == CircuitState.OPEN:
            elapsed = time.time() - (opened_at or 0.0)
            if elapsed < self.reset_timeout:
                logger.warning("circuit_breaker_rejected", circuit=self.name)
                raise CircuitBreakerError(self.name, state)
            await self._transition(pybreaker.STATE_HALF_OPEN, opened_at)
            state = CircuitState.HALF_OPEN

        try:
            result = await func(*args, **kwargs)
        except self.excluded_exceptions:
            raise
        except Exception:
            await self._on_failure(state)
            raise

        await self._on_success(state)
        return result

    async def _on_success(self, state: CircuitState) -> None:
        if state == CircuitState.HALF_OPEN:
            successes = await asyncio.to_thread(self._storage.increment_counter)
            if successes >= self.success_threshold:
                await self._transition(pybreaker.STATE_CLOSED, None)
        else:
            await asyncio.to_thread(self._storage.reset_counter)

    async def _on_failure(self, state: CircuitState) -> None:
        if state == CircuitState.HALF_OPEN:
            await self._transition(pybreaker.STATE_OPEN, time.time())
            return

        failures = await asyncio.to_thread(self._storage.increment_counter)
        if failures >= self.fail_max:
            logger.warning(
                "circuit_breaker_opened", circuit=self.name, failure_count=failures
            )
            await self._transition(pybreaker.STATE_OPEN, time.time())

    def reset(self) -> None:
        """Reset the circuit to closed. Primarily for tests and ops."""
        self._storage.reset()
        logger.info("circuit_breaker_reset", circuit=self.name)


__all__ = [
    "CircuitBreaker",
    "CircuitBreakerError",
    "CircuitState",
    "RedisCircuitBreakerStorage",
]
