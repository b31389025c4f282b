import math
import re
from urllib.parse import urlparse

import httpx
import structlog

from tagscope.config.constants import (
    CLIENT_IDENTITIES,
    CONSERVATIVE_MAX_DEPTH,
    CONSERVATIVE_MAX_PAGES,
    DEFAULT_MAX_DEPTH,
    DEFAULT_MAX_PAGES,
    MAX_RECOMMENDED_DEPTH,
    MAX_RECOMMENDED_PAGES,
    SITEMAP_PATHS,
)
from tagscope.config.settings import Settings, get_settings
from tagscope.models.crawl import SiteEstimate, SitemapInfo, SiteStructureEstimate
from tagscope.models.scraping import FetchResult
from tagscope.scraping.fetcher.browser_fetcher import RenderFetcher
from tagscope.scraping.fetcher.http_fetcher import LightweightFetcher
from tagscope.scraping.parser.html_parser import HtmlParser
from tagscope.utils.errors import ScanError
from tagscope.utils.url import ensure_scheme, is_same_domain, path_depth

log = structlog.get_logger()

_URL_ENTRY = re.compile(r"<url[\s>]", re.IGNORECASE)
_SITEMAP_ENTRY = re.compile(r"<sitemap[\s>]", re.IGNORECASE)

# Pages assumed per child sitemap of a sitemap index
_PAGES_PER_CHILD_SITEMAP = 50
_MIN_INDEX_PAGES = 100


def navigation_complexity(menu_links: int, internal_links: int) -> str:
    if menu_links > 20 or internal_links > 50:
        return "complex"
    if menu_links > 10 or internal_links > 20:
        return "moderate"
    return "simple"


def recommend(
    page_count: int | None, structure: SiteStructureEstimate, reasoning: list[str]
) -> tuple[int, int, str]:
    """Crawl budget from an estimated page count and homepage structure."""
    max_pages, max_depth, strategy = DEFAULT_MAX_PAGES, DEFAULT_MAX_DEPTH, "standard"

    if page_count:
        if page_count <= 10:
            max_pages = min(page_count, 10)
            strategy = "small_site"
            reasoning.append(f"Small site detected ({page_count} pages)")
        elif page_count <= 50:
            max_pages = 20
            strategy = "medium_site"
            reasoning.append(f"Medium site detected (~{page_count} pages)")
        else:
            max_pages = 30
            strategy = "large_site"
            reasoning.append(f"Large site detected ({page_count}+ pages)")

    if structure.navigation_complexity == "complex":
        max_pages = max(max_pages, 25)
        max_depth = max(max_depth, 3)
        reasoning.append("Complex navigation detected - increased limits")
    elif structure.navigation_complexity == "simple":
        max_depth = min(max_depth, 2)
        reasoning.append("Simple navigation - focused crawl sufficient")

    if structure.estimated_depth > 2:
        max_depth = min(structure.estimated_depth, MAX_RECOMMENDED_DEPTH)
        reasoning.append(f"Deep site structure detected ({structure.estimated_depth} levels)")

    return min(max_pages, MAX_RECOMMENDED_PAGES), min(max_depth, MAX_RECOMMENDED_DEPTH), strategy


class SiteEstimator:
    """Recommends a crawl budget from sitemap size and homepage structure."""

    def __init__(
        self,
        settings: Settings | None = None,
        fetcher: LightweightFetcher | None = None,
        renderer: RenderFetcher | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings or get_settings()
        self.fetcher = fetcher or LightweightFetcher(self.settings, transport=transport)
        self.renderer = renderer or RenderFetcher(self.settings)
        self.transport = transport
        self.log = log.bind(service="site_estimator")

    async def estimate(self, base_url: str) -> SiteEstimate:
        base = ensure_scheme(base_url)
        parsed = urlparse(base)
        origin = f"{parsed.scheme}://{parsed.netloc}"
        reasoning: list[str] = []

        self.log.info("site_estimate_start", url=base)

        sitemap = await self.discover_sitemap(origin)
        structure = await self.sample_structure(base)

        if not sitemap.found and (structure is None or structure.internal_links == 0):
            self.log.warning("site_estimate_fallback", url=base)
            return SiteEstimate(
                base_url=base,
                success=False,
                max_pages=CONSERVATIVE_MAX_PAGES,
                max_depth=CONSERVATIVE_MAX_DEPTH,
                strategy="conservative",
                reasoning=["Site structure could not be determined - using conservative defaults"],
                sitemap=sitemap,
                structure=structure or SiteStructureEstimate(),
                error="No sitemap found and no links recovered from the homepage",
            )

        structure = structure or SiteStructureEstimate()
        if sitemap.found:
            page_count = sitemap.page_count
            structure.sitemap_page_count = page_count
        else:
            page_count = structure.internal_links
            reasoning.append(
                f"No sitemap found - estimating size from {page_count} homepage links"
            )

        max_pages, max_depth, strategy = recommend(page_count, structure, reasoning)

        self.log.info(
            "site_estimate_complete",
            url=base,
            estimated_pages=page_count,
            max_pages=max_pages,
            max_depth=max_depth,
            strategy=strategy,
        )
        return SiteEstimate(
            base_url=base,
            max_pages=max_pages,
            max_depth=max_depth,
            strategy=strategy,
            reasoning=reasoning,
            sitemap=sitemap,
            structure=structure,
        )

    async def discover_sitemap(self, origin: str) -> SitemapInfo:
        """Probe the conventional sitemap locations; first hit wins."""
        async with httpx.AsyncClient(
            follow_redirects=True,
            timeout=self.settings.sitemap_timeout_ms / 1000,
            headers=CLIENT_IDENTITIES[0].headers,
            transport=self.transport,
        ) as client:
            for path in SITEMAP_PATHS:
                sitemap_url = origin + path
                try:
                    response = await client.get(sitemap_url)
                except httpx.HTTPError as e:
                    self.log.debug("sitemap_not_found", url=sitemap_url, error=str(e))
                    continue
                if response.status_code != 200:
                    continue

                body = response.text
                urls = len(_URL_ENTRY.findall(body))
                children = len(_SITEMAP_ENTRY.findall(body))
                if not urls and not children:
                    continue

                self.log.info("sitemap_found", url=sitemap_url, urls=urls, sitemaps=children)
                if urls:
                    return SitemapInfo(found=True, url=sitemap_url, page_count=urls)
                return SitemapInfo(
                    found=True,
                    url=sitemap_url,
                    page_count=max(children * _PAGES_PER_CHILD_SITEMAP, _MIN_INDEX_PAGES),
                    is_index=True,
                )

        return SitemapInfo()

    async def sample_structure(self, url: str) -> SiteStructureEstimate | None:
        """Homepage link sample; escalates to one render when nothing is recovered."""
        result: FetchResult | None = None
        try:
            result = await self.fetcher.fetch(url)
        except ScanError as e:
            self.log.warning("homepage_fetch_failed", url=url, error=str(e))

        structure = self._analyze(result) if result else None
        if structure is not None and structure.internal_links > 0:
            return structure

        try:
            rendered = await self.renderer.fetch(url)
        except ScanError as e:
            self.log.warning("homepage_render_failed", url=url, error=str(e))
            return structure

        rendered_structure = self._analyze(rendered)
        rendered_structure.rendered = True
        return rendered_structure

    @staticmethod
    def _analyze(result: FetchResult) -> SiteStructureEstimate:
        base = result.final_url or result.url
        parser = HtmlParser(result.html, base)
        links = parser.extract_links()
        internal = [link for link in links if is_same_domain(link, base)]
        depths = [path_depth(link) for link in internal]
        menu_links = parser.count_menu_links()

        estimated_depth = 1
        if depths:
            estimated_depth = min(max(math.ceil(sum(depths) / len(depths)), 2), 4)

        return SiteStructureEstimate(
            link_sample_depth=max(depths, default=0),
            estimated_depth=estimated_depth,
            navigation_complexity=navigation_complexity(menu_links, len(internal)),
            total_links=len(links),
            internal_links=len(internal),
            menu_links=menu_links,
        )
