from tagscope.config.settings import Settings
from tagscope.models.scraping import FetchTier
from tagscope.scraping.fetcher.browser_fetcher import RenderFetcher
from tagscope.scraping.fetcher.http_fetcher import LightweightFetcher

_FETCHERS = {
    FetchTier.LIGHTWEIGHT: LightweightFetcher,
    FetchTier.RENDERED: RenderFetcher,
}


def create_fetcher(
    tier: FetchTier, settings: Settings | None = None
) -> LightweightFetcher | RenderFetcher:
    """Create a fetcher instance for the given tier."""
    fetcher_class = _FETCHERS.get(tier, LightweightFetcher)
    return fetcher_class(settings)
