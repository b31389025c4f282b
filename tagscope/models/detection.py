from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from tagscope.models.scraping import ErrorKind, FetchTier


class SignatureCategory(StrEnum):
    TAG_MANAGER = "tag-manager"
    DIRECT_TAG = "direct-tag"


class SourceLocation(StrEnum):
    EXTERNAL_SCRIPT = "external-script"
    INLINE_SCRIPT = "inline-script"
    NOSCRIPT = "noscript"


class LoadAttribute(StrEnum):
    ASYNC = "async"
    DEFER = "defer"
    NONE = "none"


class ImplementationType(StrEnum):
    STATIC = "static"
    DYNAMIC_LOADING = "dynamic-loading"
    HYBRID = "hybrid"


class LoadingPattern(StrEnum):
    SYNCHRONOUS = "synchronous"
    ASYNC = "async"
    DEFERRED = "deferred"
    DYNAMIC = "dynamic"


class Methodology(StrEnum):
    NONE = "none"
    SINGLE_MANAGED = "single-managed"
    DUAL_MANAGED = "dual-managed"


class MigrationStatus(StrEnum):
    UNKNOWN = "unknown"
    NOT_STARTED = "not-started"
    IN_PROGRESS = "in-progress"
    COMPLETE = "complete"


class Environment(StrEnum):
    PROD = "prod"
    QA = "qa"
    DEV = "dev"


class ScriptRef(BaseModel):
    src: str
    is_async: bool = False
    is_defer: bool = False
    type: str | None = None

    @property
    def load_attribute(self) -> LoadAttribute:
        if self.is_async:
            return LoadAttribute.ASYNC
        if self.is_defer:
            return LoadAttribute.DEFER
        return LoadAttribute.NONE


class InlineScript(BaseModel):
    text: str
    creates_script: bool = False


class RawMatch(BaseModel):
    model_config = ConfigDict(frozen=True)

    signature_name: str
    captured_id: str | None = None
    source: SourceLocation
    load_attribute: LoadAttribute = LoadAttribute.NONE
    script_creation: bool = False
    evidence: str = ""
    version: str | None = None


class AnalyzedDocument(BaseModel):
    external_scripts: list[ScriptRef] = []
    inline_scripts: list[InlineScript] = []
    noscript_blocks: list[str] = []
    matches: list[RawMatch] = []
    parse_degraded: bool = False

    @property
    def script_count(self) -> int:
        return len(self.external_scripts) + len(self.inline_scripts)

    @property
    def script_srcs(self) -> list[str]:
        return [s.src for s in self.external_scripts]


class TagManagerFinding(BaseModel):
    platform: str
    signature: str
    ids: list[str] = []
    account: str | None = None
    profile: str | None = None
    environment: str | None = None
    version: str | None = None
    major_version: str | None = None
    minor_version: str | None = None
    build_version: str | None = None
    profile_build_date: str | None = None
    implementation_type: ImplementationType
    loading_pattern: LoadingPattern
    sources: list[SourceLocation] = []
    matches_target: bool | None = None


class DirectTagFinding(BaseModel):
    name: str
    platform: str
    ids: list[str] = []
    loading_pattern: LoadingPattern
    sources: list[SourceLocation] = []
    recommendation: str = ""


class Conflict(BaseModel):
    type: str
    severity: str
    description: str
    recommendation: str


class EscalationInfo(BaseModel):
    attempted: bool = False
    reason: str | None = None
    succeeded: bool = False
    failed: bool = False
    error: str | None = None


class DetectionTarget(BaseModel):
    environment: Environment = Environment.PROD
    account: str | None = None
    profile: str | None = None
    container_id: str | None = None

    def supplied_fields(self) -> dict[str, str]:
        """Supplied comparison fields, keyed by the id field they constrain."""
        values = {
            "account": self.account,
            "profile": self.profile,
            "environment": self.environment.value if self.environment else None,
            "container_id": self.container_id,
        }
        return {k: v for k, v in values.items() if v}


def _now() -> datetime:
    return datetime.now(UTC)


class PageFinding(BaseModel):
    """Result of scanning one URL. A failed scan is still a complete finding."""

    model_config = ConfigDict(frozen=True)

    url: str
    timestamp: datetime = Field(default_factory=_now)
    success: bool
    fetch_tier: FetchTier = FetchTier.LIGHTWEIGHT
    status_code: int | None = None
    depth: int | None = None
    page_title: str | None = None
    tag_managers: list[TagManagerFinding] = []
    direct_tags: list[DirectTagFinding] = []
    methodology: Methodology = Methodology.NONE
    migration_status: MigrationStatus = MigrationStatus.UNKNOWN
    conflicts: list[Conflict] = []
    recommendations: list[str] = []
    target_match: bool = False
    scripts: list[str] = []
    parse_degraded: bool = False
    escalation: EscalationInfo = Field(default_factory=EscalationInfo)
    error_kind: ErrorKind | None = None
    error: str | None = None
    summary: str = ""
    verbose_error: str | None = None

    @property
    def platforms(self) -> set[str]:
        return {tm.platform for tm in self.tag_managers}

    def has_platform(self, platform: str) -> bool:
        return platform in self.platforms

    @classmethod
    def failure(
        cls,
        url: str,
        *,
        error_kind: ErrorKind | None,
        error: str,
        summary: str,
        verbose_error: str | None = None,
        fetch_tier: FetchTier = FetchTier.LIGHTWEIGHT,
        status_code: int | None = None,
    ) -> "PageFinding":
        return cls(
            url=url,
            success=False,
            fetch_tier=fetch_tier,
            status_code=status_code,
            error_kind=error_kind,
            error=error,
            summary=summary,
            verbose_error=verbose_error,
        )


class DetectionOutcome(BaseModel):
    """A finding plus the document text it was derived from."""

    finding: PageFinding
    html: str = ""
    final_url: str | None = None
    matches: list[RawMatch] = []
    document: AnalyzedDocument | None = None
    captcha_detected: bool = False
