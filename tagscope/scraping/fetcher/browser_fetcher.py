import random
import time

import structlog
from playwright.async_api import async_playwright

from tagscope.config.constants import CLIENT_IDENTITIES
from tagscope.config.settings import Settings, get_settings
from tagscope.models.scraping import FetchOptions, FetchResult, FetchTier
from tagscope.scraping.fetcher.http_fetcher import detect_captcha
from tagscope.utils.errors import RenderFailedError
from tagscope.utils.retry import RetryPolicy, retry_async

log = structlog.get_logger()

_LAUNCH_ARGS = [
    "--disable-blink-features=AutomationControlled",
    "--no-sandbox",
    "--disable-dev-shm-usage",
    "--disable-infobars",
    "--window-size=1920,1080",
]

# Masks the properties headless Chromium exposes to bot checks
STEALTH_INIT_SCRIPT = """
Object.defineProperty(navigator, 'webdriver', { get: () => undefined });
Object.defineProperty(navigator, 'plugins', { get: () => [1, 2, 3, 4, 5] });
Object.defineProperty(navigator, 'languages', { get: () => ['en-US', 'en'] });
Object.defineProperty(navigator, 'hardwareConcurrency', { get: () => 8 });
Object.defineProperty(navigator, 'deviceMemory', { get: () => 8 });
const originalQuery = window.navigator.permissions && window.navigator.permissions.query;
if (originalQuery) {
  window.navigator.permissions.query = (parameters) =>
    parameters.name === 'notifications'
      ? Promise.resolve({ state: Notification.permission })
      : originalQuery(parameters);
}
window.chrome = window.chrome || {};
window.chrome.runtime = window.chrome.runtime || {};
"""

_SCROLL_STEPS = 4


class RenderFetcher:
    """Full script-executing render in headless Chromium.

    Each call launches its own browser and closes it on every exit path.
    """

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self.log = log.bind(service="render_fetcher")

    async def fetch(self, url: str, options: FetchOptions | None = None) -> FetchResult:
        options = options or FetchOptions(timeout=self.settings.render_timeout_ms)
        policy = RetryPolicy(
            max_retries=(
                options.max_retries
                if options.max_retries is not None
                else self.settings.render_max_retries
            ),
            base_delay=self.settings.retry_base_delay_ms / 1000,
            max_delay=self.settings.retry_max_delay_ms / 1000,
        )
        identity = CLIENT_IDENTITIES[0]
        start = time.time()

        self.log.info("render_start", url=url, timeout_ms=options.timeout)

        try:
            async with async_playwright() as p:
                browser = await p.chromium.launch(
                    headless=self.settings.render_headless,
                    args=_LAUNCH_ARGS,
                    executable_path=self.settings.chrome_path or None,
                )
                try:
                    context = await browser.new_context(
                        user_agent=identity.headers["User-Agent"],
                        viewport={"width": 1920, "height": 1080},
                        locale="en-US",
                        extra_http_headers={
                            "Accept-Language": identity.headers["Accept-Language"],
                            **options.headers,
                        },
                    )
                    await context.add_init_script(STEALTH_INIT_SCRIPT)
                    page = await context.new_page()

                    async def navigate(attempt: int):
                        return await page.goto(
                            url, wait_until="domcontentloaded", timeout=options.timeout
                        )

                    response = await retry_async(navigate, policy=policy)
                    await self._simulate_visitor(page)

                    html = await page.content()
                    title = await page.title()
                    final_url = page.url
                finally:
                    await browser.close()
        except RenderFailedError:
            raise
        except Exception as e:
            self.log.warning("render_failed", url=url, error=str(e))
            raise RenderFailedError(f"Render failed: {e}", url=url) from e

        status_code = response.status if response else 0
        if status_code >= 400:
            raise RenderFailedError(
                f"Rendered navigation returned HTTP {status_code}", status_code=status_code, url=url
            )

        return FetchResult(
            url=url,
            final_url=final_url or url,
            status_code=status_code or 200,
            html=html,
            headers=dict(response.headers) if response else {},
            tier_used=FetchTier.RENDERED,
            duration_ms=int((time.time() - start) * 1000),
            identity=identity.name,
            captcha_detected=detect_captcha(html),
            title=title or None,
        )

    async def _simulate_visitor(self, page) -> None:
        """Pointer movement, incremental scrolling and idle pauses, then back to top."""
        settle = self.settings.render_settle_ms
        await page.wait_for_timeout(settle // 3)

        for _ in range(3):
            await page.mouse.move(random.randint(100, 1800), random.randint(100, 900), steps=10)
            await page.wait_for_timeout(random.randint(100, 300))

        for _ in range(_SCROLL_STEPS):
            await page.mouse.wheel(0, random.randint(300, 600))
            await page.wait_for_timeout(random.randint(200, 500))

        await page.evaluate("window.scrollTo(0, 0)")
        await page.wait_for_timeout(settle)
