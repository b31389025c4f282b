from enum import StrEnum

from pydantic import BaseModel


class FetchTier(StrEnum):
    LIGHTWEIGHT = "lightweight"
    RENDERED = "rendered"


class ErrorKind(StrEnum):
    NETWORK_UNREACHABLE = "network_unreachable"
    TIMEOUT = "timeout"
    HTTP_ERROR = "http_error"
    RENDER_FAILED = "render_failed"
    INTERNAL_ERROR = "internal_error"


class FetchResult(BaseModel):
    url: str
    final_url: str = ""
    status_code: int
    html: str
    headers: dict[str, str] = {}
    tier_used: FetchTier
    duration_ms: int
    identity: str | None = None
    attempts: int = 1
    captcha_detected: bool = False
    title: str | None = None


class FetchOptions(BaseModel):
    timeout: int = 30000
    max_retries: int | None = None
    headers: dict[str, str] = {}
