import asyncio
import time


class RateLimiter:
    """Per-domain courtesy delay between consecutive requests."""

    def __init__(self, default_delay_ms: int = 1000):
        self._last_request: dict[str, float] = {}
        self._default_delay = default_delay_ms / 1000.0

    async def wait(self, domain: str, delay_ms: int | None = None) -> None:
        """Sleep until at least the delay has passed since the last request to a domain."""
        delay = (delay_ms / 1000.0) if delay_ms is not None else self._default_delay
        last = self._last_request.get(domain)
        if last is not None:
            remaining = delay - (time.monotonic() - last)
            if remaining > 0:
                await asyncio.sleep(remaining)

        self._last_request[domain] = time.monotonic()
