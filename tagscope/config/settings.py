from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    port: int = 8889
    host: str = "0.0.0.0"
    debug: bool = False
    log_level: str = "info"

    # Default detection target, overridable per call
    target_account: str = "adtaxi"

    # Lightweight tier
    fetch_timeout_ms: int = 30000
    fetch_max_retries: int = 2
    retry_base_delay_ms: int = 1000
    retry_max_delay_ms: int = 5000

    # Render tier
    render_timeout_ms: int = 30000
    render_max_retries: int = 1
    render_headless: bool = True
    render_settle_ms: int = 3000
    chrome_path: str = ""

    # Escalation policy
    escalation_script_threshold: int = 15
    escalation_hosts: list[str] = Field(default_factory=list)
    escalate_on_captcha: bool = True

    # Crawling
    crawl_delay_ms: int = 1000
    batch_delay_ms: int = 500
    max_links_per_page: int = 20
    sitemap_timeout_ms: int = 10000

    # Migration direction used for per-page status and crawl progress
    migration_source_platform: str = "Google Tag Manager"
    migration_target_platform: str = "Tealium"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @field_validator("escalation_hosts")
    @classmethod
    def lowercase_hosts(cls, hosts: list[str]) -> list[str]:
        return [h.strip().lower() for h in hosts if h.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()
