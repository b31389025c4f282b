import asyncio
from urllib.parse import urlparse

import structlog

from tagscope.config.settings import Settings, get_settings
from tagscope.models.crawl import CrawlOptions, CrawlReport, SiteEstimate
from tagscope.models.detection import DetectionTarget, PageFinding
from tagscope.services.crawler import CrawlerService
from tagscope.services.escalation import EscalationService
from tagscope.services.site_estimator import SiteEstimator
from tagscope.utils.errors import ConfigurationError
from tagscope.utils.url import ensure_scheme

log = structlog.get_logger()


class TagChecker:
    """Entry point for single-page checks, batches, crawls and site estimates."""

    def __init__(
        self,
        settings: Settings | None = None,
        escalation: EscalationService | None = None,
        crawler: CrawlerService | None = None,
        estimator: SiteEstimator | None = None,
    ):
        self.settings = settings or get_settings()
        self.escalation = escalation or EscalationService(self.settings)
        self.crawler = crawler or CrawlerService(self.settings, escalation=self.escalation)
        self.estimator = estimator or SiteEstimator(self.settings)
        self.log = log.bind(service="checker")

    def resolve_target(self, target: DetectionTarget | None) -> DetectionTarget:
        """Fill the account from the configured default when the caller gave none."""
        target = target or DetectionTarget()
        if target.account is None and self.settings.target_account:
            target = target.model_copy(update={"account": self.settings.target_account})
        return target

    @staticmethod
    def _require_url(url: str | None) -> str:
        if not url or not url.strip():
            raise ConfigurationError("A URL is required")
        url = ensure_scheme(url)
        try:
            urlparse(url)
        except ValueError as e:
            raise ConfigurationError(f"Invalid URL: {url}", url=url) from e
        return url

    async def check_url(self, url: str, target: DetectionTarget | None = None) -> PageFinding:
        url = self._require_url(url)
        outcome = await self.escalation.detect(url, self.resolve_target(target))
        return outcome.finding

    async def check_urls(
        self, urls: list[str], target: DetectionTarget | None = None
    ) -> list[PageFinding]:
        if not urls:
            raise ConfigurationError("At least one URL is required")
        checked = [self._require_url(u) for u in urls]
        resolved = self.resolve_target(target)

        findings: list[PageFinding] = []
        for i, url in enumerate(checked):
            if i:
                await asyncio.sleep(self.settings.batch_delay_ms / 1000)
            outcome = await self.escalation.detect(url, resolved)
            findings.append(outcome.finding)

        self.log.info(
            "batch_complete",
            total=len(findings),
            successful=sum(1 for f in findings if f.success),
        )
        return findings

    async def crawl_site(self, url: str, options: CrawlOptions | None = None) -> CrawlReport:
        url = self._require_url(url)
        options = options or CrawlOptions()
        options = options.model_copy(update={"target": self.resolve_target(options.target)})
        return await self.crawler.crawl(url, options)

    async def estimate_site(self, url: str) -> SiteEstimate:
        return await self.estimator.estimate(self._require_url(url))
