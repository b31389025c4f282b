from pydantic import BaseModel, Field

from tagscope.config.constants import DEFAULT_EXCLUDE_PATHS, DEFAULT_MAX_DEPTH, DEFAULT_MAX_PAGES
from tagscope.models.crawl import CrawlOptions
from tagscope.models.detection import DetectionTarget, Environment, PageFinding


class TargetFields(BaseModel):
    account: str | None = None
    profile: str | None = None
    environment: Environment = Environment.PROD
    container_id: str | None = None

    def to_target(self) -> DetectionTarget:
        return DetectionTarget(
            environment=self.environment,
            account=self.account,
            profile=self.profile,
            container_id=self.container_id,
        )


class CheckRequest(TargetFields):
    url: str


class CheckMultipleRequest(TargetFields):
    urls: list[str]


class CrawlRequest(TargetFields):
    url: str
    max_pages: int = Field(default=DEFAULT_MAX_PAGES, ge=1, le=100)
    max_depth: int = Field(default=DEFAULT_MAX_DEPTH, ge=0, le=5)
    exclude_paths: list[str] = Field(default_factory=lambda: list(DEFAULT_EXCLUDE_PATHS))

    def to_options(self) -> CrawlOptions:
        return CrawlOptions(
            max_pages=self.max_pages,
            max_depth=self.max_depth,
            exclude_paths=self.exclude_paths,
            target=self.to_target(),
        )


class AnalyzeSiteRequest(BaseModel):
    url: str


class CheckMultipleResponse(BaseModel):
    total: int
    successful: int
    failed: int
    results: list[PageFinding]


class HealthResponse(BaseModel):
    status: str
    version: str
    target_account: str
