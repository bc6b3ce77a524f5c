"""
External service gateway: circuit breaker, concurrency limit and timeout.

Wraps the calls to the search provider and the roadmap store with:
  1. Circuit breaker (fail-fast when the dependency is down)
  2. Concurrency semaphore (prevent overload)
  3. Timeout enforcement

Failures are never retried here; a generation request is attempted once.

Usage:
    gw = get_gateway()
    result = await gw.execute("google_search", my_async_callable, arg1, kwarg=val)
"""
import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Coroutine, Dict, Optional

from app.config import get_settings
from app.utils.logger import logger
from app.utils.metrics import inc, observe


@dataclass(frozen=True)
class ServiceConfig:
    max_concurrent: int = 10
    timeout_seconds: float = 30.0
    circuit_failure_threshold: int = 5
    circuit_recovery_seconds: float = 30.0


def build_gateway_config() -> Dict[str, ServiceConfig]:
    settings = get_settings()
    return {
        "google_search": ServiceConfig(
            max_concurrent=5,
            timeout_seconds=settings.search_timeout_seconds,
            circuit_failure_threshold=5,
            circuit_recovery_seconds=30.0,
        ),
        "database": ServiceConfig(
            max_concurrent=10,
            timeout_seconds=settings.persistence_timeout_seconds,
            circuit_failure_threshold=5,
            circuit_recovery_seconds=15.0,
        ),
    }


# ---------------------------------------------------------------------------
# Circuit Breaker
# ---------------------------------------------------------------------------

class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """Per-service circuit breaker (safe under the asyncio single-thread model)."""

    def __init__(self, service: str, config: ServiceConfig):
        self.service = service
        self.config = config
        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.last_failure_time: float = 0.0
        self.success_count_half_open = 0

    def allow_request(self) -> bool:
        if self.state == CircuitState.CLOSED:
            return True
        if self.state == CircuitState.OPEN:
            elapsed = time.monotonic() - self.last_failure_time
            if elapsed >= self.config.circuit_recovery_seconds:
                self.state = CircuitState.HALF_OPEN
                self.success_count_half_open = 0
                logger.info(
                    "circuit.half_open",
                    extra={"service": self.service, "circuit_state": self.state.value},
                )
                return True
            return False
        # HALF_OPEN: let probes through
        return True

    def record_success(self) -> None:
        if self.state == CircuitState.HALF_OPEN:
            self.success_count_half_open += 1
            if self.success_count_half_open >= 2:
                self.state = CircuitState.CLOSED
                self.failure_count = 0
                logger.info(
                    "circuit.closed",
                    extra={"service": self.service, "circuit_state": self.state.value},
                )
        else:
            self.failure_count = 0

    def record_failure(self) -> None:
        self.failure_count += 1
        self.last_failure_time = time.monotonic()
        if self.state == CircuitState.HALF_OPEN or self.failure_count >= self.config.circuit_failure_threshold:
            self.state = CircuitState.OPEN
            logger.warning(
                "circuit.open",
                extra={"service": self.service, "circuit_state": self.state.value},
            )


class CircuitOpenError(Exception):
    """Raised when a circuit breaker is open and the request is rejected."""

    def __init__(self, service: str):
        self.service = service
        super().__init__(f"Circuit breaker OPEN for {service}, request rejected")


# ---------------------------------------------------------------------------
# Gateway (singleton)
# ---------------------------------------------------------------------------

class ServiceGateway:
    """Central gateway for all external calls."""

    def __init__(self, config: Optional[Dict[str, ServiceConfig]] = None) -> None:
        self.config = config if config is not None else build_gateway_config()
        self._circuits: Dict[str, CircuitBreaker] = {}
        self._semaphores: Dict[str, asyncio.Semaphore] = {}

        for service, cfg in self.config.items():
            self._circuits[service] = CircuitBreaker(service, cfg)
            self._semaphores[service] = asyncio.Semaphore(cfg.max_concurrent)

    async def execute(
        self,
        service: str,
        fn: Callable[..., Coroutine],
        *args: Any,
        **kwargs: Any,
    ) -> Any:
        """
        Execute an async callable through the gateway.

        Applies: circuit breaker → semaphore → timeout. A timeout surfaces as
        asyncio.TimeoutError; callers map it to their own failure kind.
        """
        cfg = self.config.get(service)
        if not cfg:
            # Unknown service, pass through without protection
            return await fn(*args, **kwargs)

        cb = self._circuits[service]
        if not cb.allow_request():
            inc(f"{service}.rejected")
            raise CircuitOpenError(service)

        start = time.monotonic()
        try:
            async with self._semaphores[service]:
                result = await asyncio.wait_for(fn(*args, **kwargs), timeout=cfg.timeout_seconds)
        except Exception as exc:
            cb.record_failure()
            inc(f"{service}.error")
            logger.error(
                "gateway.failed",
                extra={
                    "service": service,
                    "error": str(exc)[:200] or type(exc).__name__,
                    "error_type": type(exc).__name__,
                },
            )
            raise

        cb.record_success()
        inc(f"{service}.success")
        observe(f"{service}.duration_ms", (time.monotonic() - start) * 1000)
        return result

    def get_circuit_states(self) -> Dict[str, str]:
        """Return current circuit breaker states (for health check)."""
        return {svc: cb.state.value for svc, cb in self._circuits.items()}


_gateway: Optional[ServiceGateway] = None


def get_gateway() -> ServiceGateway:
    global _gateway
    if _gateway is None:
        _gateway = ServiceGateway()
    return _gateway
