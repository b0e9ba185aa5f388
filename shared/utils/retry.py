"""
Bounded retry with exponential back-off for transient infrastructure failures.

A failure is transient when its description contains the profile's marker;
anything else propagates on the first attempt. The wait before retry ``n``
(0-based) is ``initial_delay * 2**n`` and no wait follows the last attempt.
"""
import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt, wait_exponential
import structlog

logger = structlog.get_logger()

T = TypeVar("T")


@dataclass(frozen=True)
class RetryProfile:
    marker: str
    warning: str


# RPC node, health service and database outages
DATA_SOURCE_PROFILE = RetryProfile(marker="unavailable", warning="data source unavailable")
# Chat service outages
DELIVERY_PROFILE = RetryProfile(marker="network request failed", warning="message delivery failed")


def describe_failure(exc: BaseException) -> str:
    return f"{type(exc).__name__}: {exc}"


def is_transient(exc: BaseException, marker: str) -> bool:
    return marker in describe_failure(exc)


class RetryExecutor:
    def __init__(
        self,
        max_attempts: int = 3,
        initial_delay: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.initial_delay = initial_delay
        self._sleep = sleep

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        profile: RetryProfile,
        max_attempts: int | None = None,
        initial_delay: float | None = None,
    ) -> T:
        """Run ``operation`` and retry it while it fails with ``profile.marker``."""
        attempts = self.max_attempts if max_attempts is None else max_attempts
        if attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        delay = self.initial_delay if initial_delay is None else initial_delay

        def _log_retry(state: RetryCallState):
            logger.warning(
                "transient_failure_retrying",
                reason=profile.warning,
                attempt=state.attempt_number,
                delay_sec=state.next_action.sleep if state.next_action else delay,
                error=str(state.outcome.exception()) if state.outcome else None,
            )

        retrying = AsyncRetrying(
            sleep=self._sleep,
            stop=stop_after_attempt(attempts),
            wait=wait_exponential(multiplier=delay, exp_base=2, min=0),
            retry=retry_if_exception(lambda exc: is_transient(exc, profile.marker)),
            before_sleep=_log_retry,
            reraise=True,
        )

        # tenacity only awaits callables it detects as coroutine functions
        async def _attempt():
            return await operation()

        return await retrying(_attempt)
