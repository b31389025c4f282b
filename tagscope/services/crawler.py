import time
from urllib.parse import urlparse

import structlog

from tagscope.config.settings import Settings, get_settings
from tagscope.data.tag_signatures import TAG_MANAGER_PLATFORMS
from tagscope.models.crawl import (
    CrawlOptions,
    CrawlReport,
    CrawlState,
    CrawlSummary,
    MissingPage,
    PlatformCoverage,
    RelationshipAnalysis,
    StopReason,
)
from tagscope.models.detection import Methodology, PageFinding
from tagscope.models.scraping import FetchTier
from tagscope.scraping.parser.html_parser import HtmlParser
from tagscope.scraping.parser.url_classifier import page_priority
from tagscope.services.detection import failed_finding
from tagscope.services.escalation import EscalationService
from tagscope.services.rate_limiter import RateLimiter
from tagscope.utils.errors import ConfigurationError, InternalScanError
from tagscope.utils.url import (
    ensure_scheme,
    extract_domain,
    is_excluded,
    is_same_domain,
    is_valid_scrape_url,
    normalize_url,
)

log = structlog.get_logger()


def percentage(part: int, whole: int) -> int:
    """Rounded percentage, 0 when there is nothing to divide by."""
    if whole == 0:
        return 0
    return round(100 * part / whole)


class CrawlerService:
    """Breadth-first site crawl with per-page detection and coverage analysis."""

    def __init__(
        self,
        settings: Settings | None = None,
        escalation: EscalationService | None = None,
        rate_limiter: RateLimiter | None = None,
    ):
        self.settings = settings or get_settings()
        self.escalation = escalation or EscalationService(self.settings)
        # None gives each crawl its own limiter
        self.rate_limiter = rate_limiter
        self.log = log.bind(service="crawler")

    async def crawl(self, seed_url: str, options: CrawlOptions | None = None) -> CrawlReport:
        options = options or CrawlOptions()
        try:
            seed = normalize_url(ensure_scheme(seed_url))
        except ValueError as e:
            raise ConfigurationError(f"Invalid URL: {seed_url}", url=seed_url) from e
        domain = extract_domain(seed)
        state = CrawlState(seed)
        rate_limiter = self.rate_limiter or RateLimiter(self.settings.crawl_delay_ms)
        pages: list[PageFinding] = []
        start = time.time()

        self.log.info(
            "crawl_start", url=seed, max_pages=options.max_pages, max_depth=options.max_depth
        )

        while len(pages) < options.max_pages:
            entry = state.next()
            if entry is None:
                break
            if entry.depth > options.max_depth:
                continue

            await rate_limiter.wait(domain, self.settings.crawl_delay_ms)

            try:
                finding, links = await self._visit(entry.url, entry.depth, seed, options)
            except Exception as e:
                # One page must never halt the traversal
                self.log.exception("crawl_page_error", url=entry.url)
                error = InternalScanError(str(e), url=entry.url)
                finding = failed_finding(entry.url, error, FetchTier.LIGHTWEIGHT)
                finding, links = finding.model_copy(update={"depth": entry.depth}), []

            pages.append(finding)
            self.log.info(
                "crawl_page",
                url=entry.url,
                depth=entry.depth,
                success=finding.success,
                methodology=finding.methodology.value,
                page=len(pages),
            )
            for link in links:
                state.enqueue(link, entry.depth + 1)

        stop_reason = (
            StopReason.BUDGET_EXHAUSTED
            if len(pages) >= options.max_pages and state.frontier
            else StopReason.COMPLETED
        )

        report = self.build_report(seed, pages, stop_reason)
        report.duration_ms = int((time.time() - start) * 1000)
        self.log.info(
            "crawl_complete",
            url=seed,
            pages=len(pages),
            success=report.success,
            stop_reason=stop_reason.value,
            duration_ms=report.duration_ms,
        )
        return report

    async def _visit(
        self, url: str, depth: int, seed: str, options: CrawlOptions
    ) -> tuple[PageFinding, list[str]]:
        """Detect one page and collect the links to follow from it."""
        outcome = await self.escalation.detect(url, options.target)
        finding = outcome.finding.model_copy(update={"depth": depth})
        links: list[str] = []
        if finding.success and depth < options.max_depth:
            links = self.discover_links(
                outcome.html, outcome.final_url or url, seed, options.exclude_paths
            )
        return finding, links

    def discover_links(
        self, html: str, page_url: str, seed_url: str, exclude_paths: list[str]
    ) -> list[str]:
        """Same-domain, query-less page links from an already fetched document."""
        links: list[str] = []
        for href in HtmlParser(html, page_url).extract_links():
            try:
                url = normalize_url(href)
                if not is_valid_scrape_url(url) or urlparse(url).query:
                    continue
                if not is_same_domain(url, seed_url) or is_excluded(url, exclude_paths):
                    continue
            except ValueError:
                continue
            if url not in links:
                links.append(url)
            if len(links) >= self.settings.max_links_per_page:
                break
        return links

    def build_report(
        self, base_url: str, pages: list[PageFinding], stop_reason: StopReason
    ) -> CrawlReport:
        """Aggregate page findings; the report succeeds when the seed page did."""
        successful = [p for p in pages if p.success]
        seed = pages[0] if pages else None
        report = CrawlReport(
            url=base_url,
            base_url=base_url,
            success=seed is not None and seed.success,
            pages=pages,
            summary=self._summarize(pages, successful),
            coverage=[self._coverage(platform, successful) for platform in TAG_MANAGER_PLATFORMS],
            relationship=self._relationship(successful),
            stop_reason=stop_reason,
        )
        if seed is None:
            report.message = f"No pages crawled: {base_url}"
        elif seed.success:
            report.message = (
                f"Crawled {len(pages)} page(s): {len(successful)} succeeded, "
                f"{len(pages) - len(successful)} failed"
            )
        else:
            report.error_kind = seed.error_kind
            report.error = seed.error
            report.message = seed.summary
            report.verbose_error = seed.verbose_error
        return report

    @staticmethod
    def _coverage(platform: str, successful: list[PageFinding]) -> PlatformCoverage:
        with_platform = [p for p in successful if p.has_platform(platform)]
        without = [p for p in successful if not p.has_platform(platform)]
        missing = [
            MissingPage(url=p.url, priority=page_priority(p.url), depth=p.depth) for p in without
        ]
        # Stable sort keeps crawl order within a tier and depth
        missing.sort(key=lambda m: (-m.priority, m.depth if m.depth is not None else 0))
        return PlatformCoverage(
            platform=platform,
            pages_with=len(with_platform),
            pages_without=len(without),
            coverage_pct=percentage(len(with_platform), len(successful)),
            missing_pages=missing,
        )

    @staticmethod
    def _summarize(pages: list[PageFinding], successful: list[PageFinding]) -> CrawlSummary:
        tagged = [p for p in successful if p.tag_managers]
        platforms = {platform for p in successful for platform in p.platforms}
        return CrawlSummary(
            total_pages=len(pages),
            successful_pages=len(successful),
            failed_pages=len(pages) - len(successful),
            dual_managed_pages=sum(1 for p in successful if p.methodology == Methodology.DUAL_MANAGED),
            single_managed_pages=sum(
                1 for p in successful if p.methodology == Methodology.SINGLE_MANAGED
            ),
            pages_without_tags=sum(1 for p in successful if p.methodology == Methodology.NONE),
            escalated_pages=sum(1 for p in pages if p.escalation.attempted),
            rendered_pages=sum(1 for p in pages if p.fetch_tier == FetchTier.RENDERED),
            tag_coverage_pct=percentage(len(tagged), len(successful)),
            platforms_found=[p for p in TAG_MANAGER_PLATFORMS if p in platforms],
        )

    def _relationship(self, successful: list[PageFinding]) -> RelationshipAnalysis:
        source = self.settings.migration_source_platform
        target = self.settings.migration_target_platform
        analysis = RelationshipAnalysis(source_platform=source, target_platform=target)

        for page in successful:
            has_source = page.has_platform(source)
            has_target = page.has_platform(target)
            if has_source and has_target:
                analysis.both_platform_pages.append(page.url)
            elif has_target:
                analysis.target_only_pages.append(page.url)
            elif has_source:
                analysis.source_only_pages.append(page.url)
            elif not page.tag_managers:
                analysis.no_tag_pages.append(page.url)

        analysis.pages_with_source = len(analysis.source_only_pages) + len(analysis.both_platform_pages)
        analysis.pages_with_target = len(analysis.target_only_pages) + len(analysis.both_platform_pages)

        patterns = [
            analysis.target_only_pages,
            analysis.source_only_pages,
            analysis.both_platform_pages,
        ]
        if sum(1 for group in patterns if group) > 1:
            analysis.consistent = False
            analysis.inconsistencies.append("Mixed tag management implementations across pages")
        if analysis.no_tag_pages and len(analysis.no_tag_pages) < len(successful):
            analysis.consistent = False
            analysis.inconsistencies.append(
                f"{len(analysis.no_tag_pages)} of {len(successful)} pages have no tag manager"
            )

        tagged = sum(1 for p in successful if p.tag_managers)
        analysis.migration_progress_pct = percentage(analysis.pages_with_target, tagged)

        if analysis.both_platform_pages:
            analysis.recommendations.append(
                f"Remove {source} from {len(analysis.both_platform_pages)} page(s) "
                f"that also load {target} to stop duplicate tracking"
            )
        if analysis.source_only_pages:
            analysis.recommendations.append(
                f"Migrate {len(analysis.source_only_pages)} page(s) still on {source} to {target}"
            )
        if analysis.no_tag_pages:
            analysis.recommendations.append(
                f"Add {target} to {len(analysis.no_tag_pages)} untagged page(s)"
            )

        return analysis
