"""
Retry policy for Kubernetes API calls.

Connection failures and throttling/server errors are retried with
exponential backoff. A 404 is surfaced immediately as ResourceNotFoundError
so callers can treat the resource as already gone.
"""

import time
from typing import Any, Callable, Optional, TypeVar

from kubernetes.client.rest import ApiException
from urllib3.exceptions import HTTPError as Urllib3HTTPError

from worker_autoscaler.core.config import Settings
from worker_autoscaler.core.exceptions import (
    KubernetesApiError,
    ResourceNotFoundError,
)
from worker_autoscaler.core.telemetry import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

RETRYABLE_STATUSES = frozenset({429, 500, 502, 503, 504})
TRANSIENT_ERRORS = (Urllib3HTTPError, ConnectionError, TimeoutError)


def is_retryable(error: Exception) -> bool:
    """Whether a failed call is worth another attempt."""
    if isinstance(error, ApiException):
        return error.status in RETRYABLE_STATUSES
    return isinstance(error, TRANSIENT_ERRORS)


def translate_api_exception(
    error: ApiException, description: str
) -> KubernetesApiError:
    """Map a client ApiException onto the autoscaler error taxonomy."""
    message = f"{description} failed: {error.status} {error.reason}"
    if error.status == 404:
        return ResourceNotFoundError(message, status=error.status, reason=error.reason)
    return KubernetesApiError(message, status=error.status, reason=error.reason)


class RetryPolicy:
    """Bounded exponential backoff around a single API call."""

    def __init__(
        self,
        attempts: int = 3,
        base_delay: float = 0.5,
        max_delay: float = 8.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if attempts < 1:
            raise ValueError("attempts must be at least 1")
        self.attempts = attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        return cls(
            attempts=settings.retry_attempts,
            base_delay=settings.retry_base_delay,
            max_delay=settings.retry_max_delay,
        )

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after the given (zero-based) failed attempt."""
        return min(self.base_delay * (2**attempt), self.max_delay)

    def call(
        self,
        operation: Callable[..., T],
        *args: Any,
        description: Optional[str] = None,
        **kwargs: Any,
    ) -> T:
        """
        Invoke operation, retrying transient failures.

        Args:
            operation: Kubernetes client method to call
            description: Human readable name used in logs and errors

        Returns:
            Whatever the operation returns

        Raises:
            ResourceNotFoundError: the API answered 404
            KubernetesApiError: any other API failure, or retries exhausted
        """
        description = description or getattr(operation, "__name__", "kubernetes call")
        last_error: Optional[Exception] = None

        for attempt in range(self.attempts):
            try:
                return operation(*args, **kwargs)
            except (ApiException, *TRANSIENT_ERRORS) as e:
                if not is_retryable(e):
                    raise translate_api_exception(e, description) from e

                last_error = e
                if attempt + 1 < self.attempts:
                    delay = self.delay_for(attempt)
                    logger.warning(
                        f"{description} failed ({e}); retrying in {delay:.2f}s "
                        f"(attempt {attempt + 1}/{self.attempts})"
                    )
                    self._sleep(delay)

        logger.error(f"{description} failed after {self.attempts} attempts")
        status = getattr(last_error, "status", None)
        reason = getattr(last_error, "reason", None)
        raise KubernetesApiError(
            f"{description} failed after {self.attempts} attempts: {last_error}",
            status=status if isinstance(status, int) else None,
            reason=reason if isinstance(reason, str) else None,
        ) from last_error
