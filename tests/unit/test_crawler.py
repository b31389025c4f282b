from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from tagscope.models.crawl import CrawlOptions, CrawlState, StopReason
from tagscope.models.detection import PageFinding
from tagscope.models.scraping import ErrorKind
from tagscope.scraping.fetcher.http_fetcher import LightweightFetcher
from tagscope.services.classifier import Classifier
from tagscope.services.crawler import CrawlerService, percentage
from tagscope.services.detection import LightweightEngine
from tagscope.services.escalation import EscalationService
from tagscope.utils.errors import ConfigurationError

TEALIUM_TAG = '<script src="https://tags.tiqcdn.com/utag/acct1/main/prod/utag.js"></script>'
GTM_TAG = '<script async src="https://www.googletagmanager.com/gtm.js?id=GTM-ABC1234"></script>'


def _page(links: list[str], head: str = "") -> str:
    anchors = "".join(f'<a href="{href}">{href}</a>' for href in links)
    return f"<html><head><title>t</title>{head}</head><body>{anchors}</body></html>"


def _crawler(settings, pages: dict[str, str], requested: list[str] | None = None) -> CrawlerService:
    def handler(request: httpx.Request) -> httpx.Response:
        if requested is not None:
            requested.append(str(request.url))
        body = pages.get(request.url.path)
        if body is None:
            return httpx.Response(404)
        return httpx.Response(200, html=body)

    classifier = Classifier(settings)
    fetcher = LightweightFetcher(settings, transport=httpx.MockTransport(handler))
    render = MagicMock()
    render.detect = AsyncMock(side_effect=AssertionError("render tier should not be used"))
    escalation = EscalationService(
        settings,
        lightweight=LightweightEngine(fetcher, classifier, settings),
        rendered=render,
        classifier=classifier,
    )
    return CrawlerService(settings, escalation=escalation)


@pytest.fixture
def ten_page_site(homepage_with_links_html) -> dict[str, str]:
    site = {"/": homepage_with_links_html}
    for i in range(1, 11):
        site[f"/page-{i}"] = _page(["/", f"/page-{i}/detail"])
        site[f"/page-{i}/detail"] = _page([])
    return site


class TestCrawlState:
    def test_enqueue_rejects_visited_and_queued(self):
        state = CrawlState("https://example.test/")

        assert state.enqueue("https://example.test/", 1) is False
        entry = state.next()
        assert entry.url == "https://example.test/"
        assert state.enqueue("https://example.test/", 1) is False
        assert state.enqueue("https://example.test/a", 1) is True
        assert state.enqueue("https://example.test/a", 1) is False
        assert len(state.frontier) == 1


class TestCrawler:
    @pytest.mark.asyncio
    async def test_max_pages_budget_is_breadth_first(self, settings, ten_page_site):
        crawler = _crawler(settings, ten_page_site)

        report = await crawler.crawl("https://example.test/", CrawlOptions(max_pages=3, max_depth=2))

        assert [p.url for p in report.pages] == [
            "https://example.test/",
            "https://example.test/page-1",
            "https://example.test/page-2",
        ]
        assert [p.depth for p in report.pages] == [0, 1, 1]
        assert report.stop_reason == StopReason.BUDGET_EXHAUSTED

    @pytest.mark.asyncio
    async def test_no_duplicates_and_depth_bound(self, settings, ten_page_site):
        crawler = _crawler(settings, ten_page_site)

        report = await crawler.crawl("https://example.test/", CrawlOptions(max_pages=50, max_depth=1))

        urls = [p.url for p in report.pages]
        assert len(urls) == len(set(urls)) == 11
        assert all(p.depth <= 1 for p in report.pages)
        assert report.stop_reason == StopReason.COMPLETED

    @pytest.mark.asyncio
    async def test_links_are_filtered(self, settings, ten_page_site):
        requested: list[str] = []
        crawler = _crawler(settings, ten_page_site, requested)

        await crawler.crawl("https://example.test/", CrawlOptions(max_pages=50, max_depth=1))

        assert not any("admin" in url for url in requested)
        assert not any("other-site" in url for url in requested)
        assert not any("?" in url for url in requested)

    @pytest.mark.asyncio
    async def test_page_failure_does_not_halt_traversal(self, settings):
        site = {"/": _page(["/missing", "/ok"]), "/ok": _page([])}
        crawler = _crawler(settings, site)

        report = await crawler.crawl("https://example.test/", CrawlOptions(max_pages=10, max_depth=1))

        by_url = {p.url: p for p in report.pages}
        assert by_url["https://example.test/missing"].success is False
        assert by_url["https://example.test/missing"].error_kind == ErrorKind.HTTP_ERROR
        assert by_url["https://example.test/ok"].success is True
        assert report.summary.failed_pages == 1
        assert report.summary.successful_pages == 2

    @pytest.mark.asyncio
    async def test_coverage_and_relationship(self, settings):
        site = {
            "/": _page(["/blog", "/contact", "/deep/page"], head=TEALIUM_TAG),
            "/blog": _page([], head=TEALIUM_TAG + GTM_TAG),
            "/contact": _page([]),
            "/deep/page": _page([], head=GTM_TAG),
        }
        crawler = _crawler(settings, site)

        report = await crawler.crawl("https://example.test/", CrawlOptions(max_pages=10, max_depth=1))

        coverage = {c.platform: c for c in report.coverage}
        tealium = coverage["Tealium"]
        assert (tealium.pages_with, tealium.pages_without) == (2, 2)
        assert tealium.coverage_pct == 50
        assert [m.url for m in tealium.missing_pages] == [
            "https://example.test/contact",
            "https://example.test/deep/page",
        ]
        assert coverage["Google Tag Manager"].coverage_pct == 50

        assert report.summary.dual_managed_pages == 1
        assert report.summary.pages_without_tags == 1
        assert report.summary.tag_coverage_pct == 75

        relationship = report.relationship
        assert relationship.consistent is False
        assert relationship.migration_progress_pct == 67
        assert relationship.both_platform_pages == ["https://example.test/blog"]

    @pytest.mark.asyncio
    async def test_malformed_href_does_not_abort_crawl(self, settings):
        site = {
            "/": _page(["/about", "http://[broken/", "/contact"]),
            "/about": _page([]),
            "/contact": _page([]),
        }
        crawler = _crawler(settings, site)

        report = await crawler.crawl("https://example.test/", CrawlOptions(max_pages=10, max_depth=1))

        assert [p.url for p in report.pages] == [
            "https://example.test/",
            "https://example.test/about",
            "https://example.test/contact",
        ]
        assert all(p.success for p in report.pages)

    @pytest.mark.asyncio
    async def test_malformed_seed_is_a_configuration_error(self, settings):
        crawler = _crawler(settings, {})

        with pytest.raises(ConfigurationError):
            await crawler.crawl("http://[broken/", CrawlOptions())

    @pytest.mark.asyncio
    async def test_unexpected_page_error_is_classified(self, settings):
        escalation = MagicMock()
        escalation.detect = AsyncMock(side_effect=RuntimeError("parser exploded"))
        crawler = CrawlerService(settings, escalation=escalation)

        report = await crawler.crawl("https://example.test/", CrawlOptions(max_pages=3, max_depth=1))

        page = report.pages[0]
        assert page.success is False
        assert page.error_kind == ErrorKind.INTERNAL_ERROR
        assert page.depth == 0
        assert "parser exploded" in page.error
        assert "Unexpected Scan Failure" in page.verbose_error

    @pytest.mark.asyncio
    async def test_report_mirrors_successful_seed(self, settings, ten_page_site):
        crawler = _crawler(settings, ten_page_site)

        report = await crawler.crawl("https://example.test/", CrawlOptions(max_pages=2, max_depth=1))

        assert report.url == "https://example.test/"
        assert report.success is True
        assert report.error_kind is None
        assert report.message.startswith("Crawled 2 page(s)")

    @pytest.mark.asyncio
    async def test_report_fails_when_seed_fails(self, settings):
        crawler = _crawler(settings, {})

        report = await crawler.crawl("https://example.test/", CrawlOptions(max_pages=5, max_depth=1))

        assert report.success is False
        assert report.error_kind == ErrorKind.HTTP_ERROR
        assert report.message == "HTTP 404: https://example.test/"
        assert "Page not found" in report.verbose_error
        assert len(report.pages) == 1

    @pytest.mark.asyncio
    async def test_each_crawl_gets_its_own_rate_limiter(self, settings, ten_page_site):
        crawler = _crawler(settings, ten_page_site)

        with patch("tagscope.services.crawler.RateLimiter") as limiter_cls:
            limiter_cls.return_value.wait = AsyncMock()
            await crawler.crawl("https://example.test/", CrawlOptions(max_pages=1))
            await crawler.crawl("https://other.test/", CrawlOptions(max_pages=1))

        assert limiter_cls.call_count == 2
        assert crawler.rate_limiter is None


class TestCoverageArithmetic:
    def test_percentage_rounds(self):
        assert percentage(1, 3) == 33
        assert percentage(2, 3) == 67

    def test_percentage_zero_guard(self):
        assert percentage(0, 0) == 0

    def test_report_with_no_successful_pages(self, settings):
        crawler = CrawlerService(settings, escalation=MagicMock())
        failed = PageFinding.failure(
            "https://example.test/", error_kind=ErrorKind.TIMEOUT, error="t", summary="t"
        )

        report = crawler.build_report("https://example.test/", [failed], StopReason.COMPLETED)

        assert all(c.coverage_pct == 0 for c in report.coverage)
        assert report.summary.tag_coverage_pct == 0
        assert report.relationship.migration_progress_pct == 0
