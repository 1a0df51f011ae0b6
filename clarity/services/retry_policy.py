"""Fallback and retry policy shared by fallible dependencies.

Tracks attempts per operation key in a bounded counter. A failure with
budget remaining is reported as retryable together with the fallback
value, so the caller decides whether to retry or accept the fallback.
Once the budget is consumed the key is marked exhausted: every later call
returns the fallback immediately without running the operation, until a
caller that observed a success elsewhere calls clear_retry_attempts().
"""

import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Deque, Dict, Generic, Optional, Set, TypeVar

import structlog

from clarity.core.exceptions import RetryExhausted

log =structlog.get_logger(__name__)

T = TypeVar("T")

RECENT_WINDOW_SECONDS = 300.0


@dataclass
class RetryOutcome(Generic[T]):
    """Result of a policy-wrapped call."""

    value: T
    success: bool
    retryable: bool = False
    exhausted: bool = False
    attempts: int = 0
    error: Optional[BaseException] = None

    @property
    def used_fallback(self) -> bool:
        return not self.success


@dataclass
class ErrorRecord:
    """One recorded failure."""

    key: str
    error_type: str
    message: str
    timestamp: float
    context: Dict[str, Any] = field(default_factory=dict)


class RetryPolicy:
    """
    Bounded retry bookkeeping with deterministic fallbacks.

    One instance is shared by the content repository and any other
    fallible dependency; keys namespace the operations
    (e.g. "content.load_index", "content.get_mining_prompts").
    """

    def __init__(
        self,
        max_retries: int = 3,
        max_log_size: int = 100,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_retries = max_retries
        self._attempts: Dict[str, int] = {}
        self._exhausted: Set[str] = set()
        self._errors: Deque[ErrorRecord] = deque(maxlen=max_log_size)
        self._clock = clock

    async def with_retry(
        self,
        key: str,
        op: Callable[[], Awaitable[T]],
        fallback_value: T,
        **context: Any,
    ) -> RetryOutcome[T]:
        """Run `op` once under the retry budget for `key`.

        Never raises for failures of `op`; cancellation propagates.
        """
        if key in self._exhausted:
            log.debug("retry_key_exhausted_fallback", key=key)
            attempts = self._attempts.get(key, 0)
            return RetryOutcome(
                value=fallback_value,
                success=False,
                exhausted=True,
                attempts=attempts,
                error=RetryExhausted(key, attempts),
            )

        try:
            value = await op()
        except Exception as e:
            return self.record_failure(key, e, fallback_value, **context)

        return RetryOutcome(
            value=value, success=True, attempts=self._attempts.get(key, 0)
        )

    def record_failure(
        self,
        key: str,
        error: BaseException,
        fallback_value: T,
        **context: Any,
    ) -> RetryOutcome[T]:
        """Count a failure for `key` and decide between retryable and exhausted."""
        self._log_error(key, error, context)

        attempts = self._attempts.get(key, 0)
        if attempts < self.max_retries:
            self._attempts[key] = attempts + 1
            log.info(
                "operation_failed_retryable",
                key=key,
                attempt=attempts + 1,
                max_retries=self.max_retries,
                error_type=type(error).__name__,
            )
            return RetryOutcome(
                value=fallback_value,
                success=False,
                retryable=True,
                attempts=attempts + 1,
                error=error,
            )

        self._exhausted.add(key)
        log.warning(
            "retry_exhausted",
            key=key,
            attempts=attempts,
            error_type=type(error).__name__,
            message=str(error),
        )
        exhausted = RetryExhausted(key, attempts)
        exhausted.__cause__ = error
        return RetryOutcome(
            value=fallback_value,
            success=False,
            exhausted=True,
            attempts=attempts,
            error=exhausted,
        )

    def clear_retry_attempts(self, key: str) -> None:
        """Reset the counter and exhausted mark for `key`."""
        self._attempts.pop(key, None)
        self._exhausted.discard(key)

    def attempts(self, key: str) -> int:
        return self._attempts.get(key, 0)

    def is_exhausted(self, key: str) -> bool:
        return key in self._exhausted

    # ------------------------------------------------------------------
    # Error log
    # ------------------------------------------------------------------

    def _log_error(
        self, key: str, error: BaseException, context: Dict[str, Any]
    ) -> None:
        self._errors.append(
            ErrorRecord(
                key=key,
                error_type=type(error).__name__,
                message=str(error),
                timestamp=self._clock(),
                context=dict(context),
            )
        )

    def recent_errors(self, window_seconds: float = RECENT_WINDOW_SECONDS) -> list:
        now = self._clock()
        return [e for e in self._errors if now - e.timestamp < window_seconds]

    def error_stats(self) -> Dict[str, Any]:
        """Counts by key, recent error count, and current retry counters."""
        by_key: Dict[str, int] = {}
        for record in self._errors:
            by_key[record.key] = by_key.get(record.key, 0) + 1

        recent = len(self.recent_errors())
        return {
            "total_errors": len(self._errors),
            "recent_errors": recent,
            "by_key": by_key,
            "retry_attempts": dict(self._attempts),
            "exhausted": sorted(self._exhausted),
            "is_healthy": recent < 3,
        }

    def is_healthy(self) -> bool:
        """Fewer than three failures in the last five minutes."""
        return len(self.recent_errors()) < 3

    def clear_error_log(self) -> None:
        self._errors.clear()
