from collections import deque
from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, Field

from tagscope.config.constants import (
    DEFAULT_EXCLUDE_PATHS,
    DEFAULT_MAX_DEPTH,
    DEFAULT_MAX_PAGES,
)
from tagscope.models.detection import DetectionTarget, PageFinding
from tagscope.models.scraping import ErrorKind


def _now() -> datetime:
    return datetime.now(UTC)


class StopReason(StrEnum):
    COMPLETED = "completed"
    BUDGET_EXHAUSTED = "budget-exhausted"


class CrawlOptions(BaseModel):
    max_pages: int = Field(default=DEFAULT_MAX_PAGES, ge=1)
    max_depth: int = Field(default=DEFAULT_MAX_DEPTH, ge=0)
    exclude_paths: list[str] = Field(default_factory=lambda: list(DEFAULT_EXCLUDE_PATHS))
    target: DetectionTarget = Field(default_factory=DetectionTarget)


class CrawlFrontierEntry(BaseModel):
    url: str
    depth: int


class CrawlState:
    """Traversal state for a single crawl; never shared between crawls."""

    def __init__(self, seed_url: str):
        self.visited: set[str] = set()
        self.queued: set[str] = {seed_url}
        self.frontier: deque[CrawlFrontierEntry] = deque([CrawlFrontierEntry(url=seed_url, depth=0)])

    def enqueue(self, url: str, depth: int) -> bool:
        """Add a URL to the frontier unless it was already visited or queued."""
        if url in self.visited or url in self.queued:
            return False
        self.queued.add(url)
        self.frontier.append(CrawlFrontierEntry(url=url, depth=depth))
        return True

    def next(self) -> CrawlFrontierEntry | None:
        while self.frontier:
            entry = self.frontier.popleft()
            self.queued.discard(entry.url)
            if entry.url in self.visited:
                continue
            self.visited.add(entry.url)
            return entry
        return None


class MissingPage(BaseModel):
    url: str
    priority: int
    depth: int | None = None


class PlatformCoverage(BaseModel):
    platform: str
    pages_with: int
    pages_without: int
    coverage_pct: int
    missing_pages: list[MissingPage] = []


class CrawlSummary(BaseModel):
    total_pages: int = 0
    successful_pages: int = 0
    failed_pages: int = 0
    dual_managed_pages: int = 0
    single_managed_pages: int = 0
    pages_without_tags: int = 0
    escalated_pages: int = 0
    rendered_pages: int = 0
    tag_coverage_pct: int = 0
    platforms_found: list[str] = []


class RelationshipAnalysis(BaseModel):
    consistent: bool = True
    inconsistencies: list[str] = []
    source_platform: str
    target_platform: str
    pages_with_source: int = 0
    pages_with_target: int = 0
    migration_progress_pct: int = 0
    target_only_pages: list[str] = []
    source_only_pages: list[str] = []
    both_platform_pages: list[str] = []
    no_tag_pages: list[str] = []
    recommendations: list[str] = []


class CrawlReport(BaseModel):
    """Aggregate crawl result. Mirrors the seed page: a failed seed fails the report."""

    url: str
    base_url: str
    timestamp: datetime = Field(default_factory=_now)
    success: bool = True
    pages: list[PageFinding] = []
    summary: CrawlSummary = Field(default_factory=CrawlSummary)
    coverage: list[PlatformCoverage] = []
    relationship: RelationshipAnalysis
    stop_reason: StopReason = StopReason.COMPLETED
    duration_ms: int = 0
    message: str = ""
    error_kind: ErrorKind | None = None
    error: str | None = None
    verbose_error: str | None = None


class SitemapInfo(BaseModel):
    found: bool = False
    url: str | None = None
    page_count: int = 0
    is_index: bool = False


class SiteStructureEstimate(BaseModel):
    sitemap_page_count: int | None = None
    link_sample_depth: int = 0
    estimated_depth: int = 1
    navigation_complexity: str = "simple"
    total_links: int = 0
    internal_links: int = 0
    menu_links: int = 0
    rendered: bool = False


class SiteEstimate(BaseModel):
    base_url: str
    timestamp: datetime = Field(default_factory=_now)
    success: bool = True
    max_pages: int
    max_depth: int
    strategy: str
    reasoning: list[str] = []
    sitemap: SitemapInfo = Field(default_factory=SitemapInfo)
    structure: SiteStructureEstimate = Field(default_factory=SiteStructureEstimate)
    error: str | None = None
