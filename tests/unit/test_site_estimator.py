from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from tagscope.models.crawl import SiteStructureEstimate
from tagscope.models.scraping import FetchResult, FetchTier
from tagscope.services.site_estimator import SiteEstimator, navigation_complexity, recommend
from tagscope.utils.errors import RenderFailedError


def _sitemap(count: int) -> str:
    urls = "".join(f"<url><loc>https://example.test/p{i}</loc></url>" for i in range(count))
    return f'<?xml version="1.0"?><urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">{urls}</urlset>'


def _estimator(settings, routes: dict[str, httpx.Response], renderer=None) -> SiteEstimator:
    def handler(request: httpx.Request) -> httpx.Response:
        return routes.get(request.url.path, httpx.Response(404))

    return SiteEstimator(
        settings,
        renderer=renderer or MagicMock(fetch=AsyncMock(side_effect=RenderFailedError("no browser"))),
        transport=httpx.MockTransport(handler),
    )


class TestRecommend:
    def test_small_site(self):
        structure = SiteStructureEstimate(navigation_complexity="simple", estimated_depth=2)
        pages, depth, strategy = recommend(6, structure, [])

        assert (pages, depth, strategy) == (6, 2, "small_site")

    def test_medium_site(self):
        structure = SiteStructureEstimate(navigation_complexity="moderate", estimated_depth=2)

        assert recommend(40, structure, []) == (20, 2, "medium_site")

    def test_complex_navigation_raises_limits(self):
        structure = SiteStructureEstimate(navigation_complexity="complex", estimated_depth=2)

        assert recommend(8, structure, []) == (25, 3, "small_site")

    def test_deep_structure_and_caps(self):
        structure = SiteStructureEstimate(navigation_complexity="complex", estimated_depth=4)
        reasoning: list[str] = []

        assert recommend(5000, structure, reasoning) == (30, 4, "large_site")
        assert any("Deep site structure" in r for r in reasoning)

    def test_navigation_complexity(self):
        assert navigation_complexity(25, 0) == "complex"
        assert navigation_complexity(0, 51) == "complex"
        assert navigation_complexity(11, 0) == "moderate"
        assert navigation_complexity(5, 5) == "simple"


class TestSiteEstimator:
    @pytest.mark.asyncio
    async def test_sitemap_drives_size_tier(self, settings, homepage_with_links_html):
        estimator = _estimator(
            settings,
            {
                "/sitemap.xml": httpx.Response(200, text=_sitemap(35)),
                "/": httpx.Response(200, html=homepage_with_links_html),
            },
        )

        estimate = await estimator.estimate("example.test")

        assert estimate.sitemap.found is True
        assert estimate.sitemap.page_count == 35
        assert estimate.structure.sitemap_page_count == 35
        assert estimate.strategy == "medium_site"
        assert estimate.max_pages == 20

    @pytest.mark.asyncio
    async def test_sitemap_index(self, settings, homepage_with_links_html):
        index = "<sitemapindex>" + "<sitemap><loc>x</loc></sitemap>" * 3 + "</sitemapindex>"
        estimator = _estimator(
            settings,
            {
                "/sitemap_index.xml": httpx.Response(200, text=index),
                "/": httpx.Response(200, html=homepage_with_links_html),
            },
        )

        estimate = await estimator.estimate("https://example.test/")

        assert estimate.sitemap.is_index is True
        assert estimate.sitemap.page_count == 150
        assert estimate.strategy == "large_site"

    @pytest.mark.asyncio
    async def test_homepage_links_stand_in_for_sitemap(self, settings, homepage_with_links_html):
        estimator = _estimator(settings, {"/": httpx.Response(200, html=homepage_with_links_html)})

        estimate = await estimator.estimate("https://example.test/")

        assert estimate.sitemap.found is False
        assert estimate.structure.internal_links == 12
        assert estimate.structure.menu_links == 10
        assert estimate.strategy == "medium_site"

    @pytest.mark.asyncio
    async def test_render_fallback_when_no_links(self, settings, homepage_with_links_html):
        renderer = MagicMock()
        renderer.fetch = AsyncMock(
            return_value=FetchResult(
                url="https://example.test/",
                status_code=200,
                html=homepage_with_links_html,
                tier_used=FetchTier.RENDERED,
                duration_ms=10,
            )
        )
        estimator = _estimator(
            settings, {"/": httpx.Response(200, html="<html><body></body></html>")}, renderer
        )

        estimate = await estimator.estimate("https://example.test/")

        renderer.fetch.assert_awaited_once()
        assert estimate.structure.rendered is True
        assert estimate.structure.internal_links > 0

    @pytest.mark.asyncio
    async def test_conservative_defaults(self, settings):
        estimator = _estimator(settings, {"/": httpx.Response(403)})

        estimate = await estimator.estimate("https://example.test/")

        assert estimate.success is False
        assert (estimate.max_pages, estimate.max_depth) == (5, 1)
        assert estimate.strategy == "conservative"
