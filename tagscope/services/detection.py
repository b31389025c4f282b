from typing import Protocol

import structlog

from tagscope.config.settings import Settings, get_settings
from tagscope.models.detection import DetectionOutcome, DetectionTarget, PageFinding
from tagscope.models.scraping import FetchResult, FetchTier
from tagscope.scraping.fetcher.factory import create_fetcher
from tagscope.scraping.parser.html_parser import HtmlParser
from tagscope.scraping.parser.markup_analyzer import analyze_markup
from tagscope.services.classifier import Classifier
from tagscope.utils.errors import ScanError, summarize_error, troubleshooting_message

log = structlog.get_logger()


class Fetcher(Protocol):
    async def fetch(self, url: str) -> FetchResult: ...


class DetectionEngine(Protocol):
    """One fetch strategy plus analysis and classification of what it returns."""

    tier: FetchTier

    async def detect(self, url: str, target: DetectionTarget | None = None) -> DetectionOutcome: ...


def failed_finding(url: str, error: ScanError, tier: FetchTier) -> PageFinding:
    return PageFinding.failure(
        url,
        error_kind=error.kind,
        error=str(error),
        summary=summarize_error(error, url),
        verbose_error=troubleshooting_message(error, url),
        fetch_tier=tier,
        status_code=getattr(error, "status_code", None) or None,
    )


class _FetchingEngine:
    tier: FetchTier

    def __init__(
        self,
        fetcher: Fetcher,
        classifier: Classifier | None = None,
        settings: Settings | None = None,
    ):
        settings = settings or get_settings()
        self.fetcher = fetcher
        self.classifier = classifier or Classifier(settings)
        self.log = log.bind(service="detection", tier=self.tier.value)

    async def detect(self, url: str, target: DetectionTarget | None = None) -> DetectionOutcome:
        try:
            result = await self.fetcher.fetch(url)
        except ScanError as e:
            self.log.warning("scan_failed", url=url, error_kind=e.kind, error=str(e))
            return DetectionOutcome(finding=failed_finding(url, e, self.tier))

        base_url = result.final_url or url
        document = analyze_markup(result.html, base_url)
        title = result.title or HtmlParser(result.html, base_url).extract_title()

        finding = self.classifier.classify(
            document.matches,
            target,
            url=url,
            fetch_tier=self.tier,
            status_code=result.status_code,
            page_title=title,
            scripts=document.script_srcs,
            parse_degraded=document.parse_degraded,
        )
        self.log.info(
            "scan_complete",
            url=url,
            methodology=finding.methodology.value,
            matches=len(document.matches),
            scripts=document.script_count,
        )
        return DetectionOutcome(
            finding=finding,
            html=result.html,
            final_url=base_url,
            matches=document.matches,
            document=document,
            captcha_detected=result.captcha_detected,
        )


class LightweightEngine(_FetchingEngine):
    tier = FetchTier.LIGHTWEIGHT

    def __init__(
        self,
        fetcher: Fetcher | None = None,
        classifier: Classifier | None = None,
        settings: Settings | None = None,
    ):
        super().__init__(fetcher or create_fetcher(self.tier, settings), classifier, settings)


class RenderEngine(_FetchingEngine):
    tier = FetchTier.RENDERED

    def __init__(
        self,
        fetcher: Fetcher | None = None,
        classifier: Classifier | None = None,
        settings: Settings | None = None,
    ):
        super().__init__(fetcher or create_fetcher(self.tier, settings), classifier, settings)
