import asyncio
from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from typing import Any, TypeVar

import structlog

log = structlog.get_logger()


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    max_retries: int = 2
    base_delay: float = 1.0
    max_delay: float = 5.0

    def delay_for(self, attempt: int) -> float:
        """Exponential backoff delay after the given zero-based attempt."""
        return min(self.base_delay * (2**attempt), self.max_delay)


T = TypeVar("T")


async def retry_async(
    fn: Callable[[int], Coroutine[Any, Any, T]],
    policy: RetryPolicy | None = None,
    retry_on: tuple[type[Exception], ...] = (Exception,),
    giveup: Callable[[Exception], bool] | None = None,
) -> T:
    """Retry an async function with exponential backoff.

    ``fn`` receives the zero-based attempt number so callers can vary their
    behaviour per attempt. ``giveup`` short-circuits retries for errors that
    will not improve on another attempt.
    """
    policy = policy or RetryPolicy()
    last_error: Exception | None = None

    for attempt in range(policy.max_retries + 1):
        try:
            return await fn(attempt)
        except retry_on as e:
            last_error = e
            if attempt == policy.max_retries or (giveup is not None and giveup(e)):
                break
            delay = policy.delay_for(attempt)
            log.warning(
                "retry_attempt",
                attempt=attempt + 1,
                max_retries=policy.max_retries,
                delay=delay,
                error=str(e),
            )
            await asyncio.sleep(delay)

    raise last_error  # type: ignore[misc]
