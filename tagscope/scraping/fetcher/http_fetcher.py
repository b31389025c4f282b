import time

import httpx
import structlog

from tagscope.config.constants import CAPTCHA_SIGNALS, CLIENT_IDENTITIES, ClientIdentity
from tagscope.config.settings import Settings, get_settings
from tagscope.models.scraping import FetchOptions, FetchResult, FetchTier
from tagscope.utils.errors import (
    FetchTimeoutError,
    HttpStatusError,
    NetworkUnreachableError,
    ScanError,
)
from tagscope.utils.retry import RetryPolicy, retry_async

log = structlog.get_logger()

_DNS_MARKERS = (
    "name or service not known",
    "nodename nor servname",
    "getaddrinfo failed",
    "temporary failure in name resolution",
    "no address associated",
    "name resolution",
    "enotfound",
)
_REFUSED_MARKERS = ("connection refused", "errno 111", "econnrefused", "actively refused")


def classify_connect_error(error: Exception) -> str:
    """Map a transport failure onto dns | refused | reset."""
    text = str(error).lower()
    if any(marker in text for marker in _DNS_MARKERS):
        return "dns"
    if any(marker in text for marker in _REFUSED_MARKERS):
        return "refused"
    return "reset"


def detect_captcha(html: str) -> bool:
    html_lower = html.lower()
    return any(signal in html_lower for signal in CAPTCHA_SIGNALS)


def _is_definitive(error: Exception) -> bool:
    """Errors another attempt will not fix."""
    if isinstance(error, HttpStatusError):
        return error.status_code != 403 and error.status_code < 500
    return False


class LightweightFetcher:
    """Plain HTTP GET with browser-like headers, rotating identity on each retry."""

    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings or get_settings()
        self.transport = transport
        self.log = log.bind(service="lightweight_fetcher")

    def identity_for(self, attempt: int) -> ClientIdentity:
        return CLIENT_IDENTITIES[attempt % len(CLIENT_IDENTITIES)]

    async def fetch(self, url: str, options: FetchOptions | None = None) -> FetchResult:
        options = options or FetchOptions(timeout=self.settings.fetch_timeout_ms)
        max_retries = (
            options.max_retries if options.max_retries is not None else self.settings.fetch_max_retries
        )
        policy = RetryPolicy(
            max_retries=max_retries,
            base_delay=self.settings.retry_base_delay_ms / 1000,
            max_delay=self.settings.retry_max_delay_ms / 1000,
        )

        async def attempt_fetch(attempt: int) -> FetchResult:
            return await self._attempt(url, options, attempt)

        return await retry_async(
            attempt_fetch,
            policy=policy,
            retry_on=(ScanError,),
            giveup=_is_definitive,
        )

    async def _attempt(self, url: str, options: FetchOptions, attempt: int) -> FetchResult:
        identity = self.identity_for(attempt)
        headers = {**identity.headers, **options.headers}
        timeout = options.timeout / 1000  # ms to seconds
        start = time.time()

        self.log.debug("fetch_attempt", url=url, attempt=attempt + 1, identity=identity.name)

        try:
            async with httpx.AsyncClient(
                follow_redirects=True,
                timeout=timeout,
                headers=headers,
                transport=self.transport,
            ) as client:
                response = await client.get(url)
        except httpx.TimeoutException as e:
            raise FetchTimeoutError(
                f"Request timed out after {options.timeout}ms", timeout_ms=options.timeout, url=url
            ) from e
        except (httpx.ConnectError, httpx.ReadError, httpx.RemoteProtocolError) as e:
            cause = classify_connect_error(e)
            raise NetworkUnreachableError(str(e) or type(e).__name__, cause=cause, url=url) from e
        except httpx.HTTPError as e:
            raise NetworkUnreachableError(str(e) or type(e).__name__, cause="reset", url=url) from e

        if response.status_code >= 400:
            raise HttpStatusError(
                f"HTTP {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
                url=url,
            )

        html = response.text
        return FetchResult(
            url=url,
            final_url=str(response.url),
            status_code=response.status_code,
            html=html,
            headers=dict(response.headers),
            tier_used=FetchTier.LIGHTWEIGHT,
            duration_ms=int((time.time() - start) * 1000),
            identity=identity.name,
            attempts=attempt + 1,
            captcha_detected=detect_captcha(html),
        )
