"""
Circuit breakers for the outbound services

Guards calls to the Google geocoder and the WhatsApp Cloud API so that a
failing upstream is skipped quickly instead of slowing every dialogue step.

    CLOSED --(failure_threshold failures)--> OPEN
    OPEN --(timeout_seconds elapsed)--> HALF_OPEN
    HALF_OPEN --(success_threshold successes)--> CLOSED
    HALF_OPEN --(any failure)--> OPEN

Not every exception is an outage. A config may carry ``is_failure``; errors
it rejects propagate without touching the counters.
"""
import asyncio
import threading
import time
from enum import Enum
from typing import Any, Callable, Optional, TypeVar, ParamSpec
from dataclasses import dataclass, field

from constituent_bot.core.logging import get_logger
from constituent_bot.core.exceptions import CircuitBreakerOpenError, WhatsAppError

logger = get_logger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreakerConfig:
    failure_threshold: int = 5
    success_threshold: int = 2
    timeout_seconds: float = 30.0
    half_open_max_calls: int = 3
    is_failure: Optional[Callable[[Exception], bool]] = None


@dataclass
class _Counters:
    state: CircuitState = CircuitState.CLOSED
    failure_count: int = 0
    success_count: int = 0
    opened_at: float = 0.0
    half_open_calls: int = 0
    last_error: Optional[str] = field(default=None)


class CircuitBreaker:
    """Per-service breaker; ``get_instance`` hands out one per service name"""

    _instances: dict[str, "CircuitBreaker"] = {}
    _instances_lock = threading.Lock()

    def __init__(
        self,
        service_name: str,
        config: CircuitBreakerConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.service_name = service_name
        self.config = config or CircuitBreakerConfig()
        self._clock = clock
        self._counters = _Counters()
        self._lock = threading.Lock()

    @classmethod
    def get_instance(
        cls,
        service_name: str,
        config: CircuitBreakerConfig | None = None
    ) -> "CircuitBreaker":
        with cls._instances_lock:
            breaker = cls._instances.get(service_name)
            if breaker is None:
                breaker = cls._instances[service_name] = cls(service_name, config)
        return breaker

    @classmethod
    def reset_all(cls) -> None:
        """Forget every breaker (tests)"""
        with cls._instances_lock:
            cls._instances.clear()

    @property
    def state(self) -> CircuitState:
        return self._counters.state

    @property
    def is_closed(self) -> bool:
        return self.state == CircuitState.CLOSED

    @property
    def is_open(self) -> bool:
        return self.state == CircuitState.OPEN

    @property
    def is_half_open(self) -> bool:
        return self.state == CircuitState.HALF_OPEN

    def get_retry_after(self) -> float:
        """Seconds until an open circuit lets a probe through"""
        if self._counters.state != CircuitState.OPEN:
            return 0.0
        elapsed = self._clock() - self._counters.opened_at
        return max(0.0, self.config.timeout_seconds - elapsed)

    def snapshot(self) -> dict[str, Any]:
        """Point-in-time view for health reporting"""
        return {
            "state": self.state.value,
            "failure_count": self._counters.failure_count,
            "retry_after_seconds": round(self.get_retry_after(), 1),
            "last_error": self._counters.last_error,
        }

    def _open(self) -> None:
        self._counters.opened_at = self._clock()
        self._transition_to(CircuitState.OPEN)

    def _transition_to(self, new_state: CircuitState) -> None:
        # Caller holds self._lock
        old_state = self._counters.state
        self._counters.state = new_state
        self._counters.success_count = 0
        if new_state == CircuitState.HALF_OPEN:
            self._counters.half_open_calls = 0
        elif new_state == CircuitState.CLOSED:
            self._counters.failure_count = 0
            self._counters.last_error = None

        log = logger.warning if new_state == CircuitState.OPEN else logger.info
        log(
            f"Circuit '{self.service_name}' {old_state.value} -> {new_state.value}",
            extra_data={
                "service": self.service_name,
                "old_state": old_state.value,
                "new_state": new_state.value,
                "failure_count": self._counters.failure_count,
            }
        )

    async def record_success(self) -> None:
        with self._lock:
            if self._counters.state == CircuitState.HALF_OPEN:
                self._counters.success_count += 1
                if self._counters.success_count >= self.config.success_threshold:
                    self._transition_to(CircuitState.CLOSED)
            elif self._counters.state == CircuitState.CLOSED:
                self._counters.failure_count = 0

    async def record_failure(self, error: Exception | None = None) -> None:
        with self._lock:
            self._counters.failure_count += 1
            self._counters.last_error = type(error).__name__ if error else None

            logger.debug(
                f"Circuit '{self.service_name}' recorded failure",
                extra_data={
                    "service": self.service_name,
                    "failure_count": self._counters.failure_count,
                    "threshold": self.config.failure_threshold,
                    "error": str(error) if error else None
                }
            )

            if self._counters.state == CircuitState.HALF_OPEN:
                self._open()
            elif (
                self._counters.state == CircuitState.CLOSED
                and self._counters.failure_count >= self.config.failure_threshold
            ):
                self._open()

    async def can_execute(self) -> bool:
        with self._lock:
            if self._counters.state == CircuitState.CLOSED:
                return True

            if self._counters.state == CircuitState.OPEN:
                if self.get_retry_after() > 0:
                    return False
                self._transition_to(CircuitState.HALF_OPEN)

            if self._counters.half_open_calls < self.config.half_open_max_calls:
                self._counters.half_open_calls += 1
                return True
            return False

    def _counts_as_failure(self, error: Exception) -> bool:
        return self.config.is_failure is None or self.config.is_failure(error)

    async def execute(
        self,
        func: Callable[P, T],
        *args: P.args,
        **kwargs: P.kwargs
    ) -> T:
        """
        Run ``func`` under the breaker.

        Raises:
            CircuitBreakerOpenError: the circuit is open, ``func`` was not called
        """
        if not await self.can_execute():
            raise CircuitBreakerOpenError(self.service_name, self.get_retry_after())

        try:
            if asyncio.iscoroutinefunction(func):
                result = await func(*args, **kwargs)
            else:
                result = func(*args, **kwargs)
        except Exception as e:
            if self._counts_as_failure(e):
                await self.record_failure(e)
            raise

        await self.record_success()
        return result


def _is_whatsapp_outage(error: Exception) -> bool:
    """A rejected recipient or payload (4xx other than 429) is not an outage"""
    if isinstance(error, WhatsAppError):
        status_code = (error.details or {}).get("status_code")
        if isinstance(status_code, int) and 400 <= status_code < 500 and status_code != 429:
            return False
    return True


def get_whatsapp_circuit_breaker() -> CircuitBreaker:
    return CircuitBreaker.get_instance(
        "whatsapp",
        CircuitBreakerConfig(
            failure_threshold=5,
            success_threshold=2,
            timeout_seconds=30.0,
            is_failure=_is_whatsapp_outage,
        )
    )


def get_geocoder_circuit_breaker() -> CircuitBreaker:
    """Opens sooner than the WhatsApp breaker: an address is optional"""
    return CircuitBreaker.get_instance(
        "geocoder",
        CircuitBreakerConfig(
            failure_threshold=3,
            success_threshold=1,
            timeout_seconds=60.0,
            half_open_max_calls=1,
        )
    )
