from functools import lru_cache

from fastapi import APIRouter, Depends, HTTPException

from tagscope.config.settings import get_settings
from tagscope.models.api import (
    AnalyzeSiteRequest,
    CheckMultipleRequest,
    CheckMultipleResponse,
    CheckRequest,
    CrawlRequest,
)
from tagscope.models.crawl import CrawlReport, SiteEstimate
from tagscope.models.detection import PageFinding
from tagscope.services.checker import TagChecker
from tagscope.utils.errors import ConfigurationError

router = APIRouter()


@lru_cache
def get_checker() -> TagChecker:
    return TagChecker(get_settings())


@router.post("/check", response_model=PageFinding)
async def check(input: CheckRequest, checker: TagChecker = Depends(get_checker)) -> PageFinding:
    try:
        return await checker.check_url(input.url, input.to_target())
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/check-multiple", response_model=CheckMultipleResponse)
async def check_multiple(
    input: CheckMultipleRequest, checker: TagChecker = Depends(get_checker)
) -> CheckMultipleResponse:
    try:
        results = await checker.check_urls(input.urls, input.to_target())
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    successful = sum(1 for r in results if r.success)
    return CheckMultipleResponse(
        total=len(results),
        successful=successful,
        failed=len(results) - successful,
        results=results,
    )


@router.post("/crawl", response_model=CrawlReport)
async def crawl(input: CrawlRequest, checker: TagChecker = Depends(get_checker)) -> CrawlReport:
    try:
        return await checker.crawl_site(input.url, input.to_options())
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/analyze-site", response_model=SiteEstimate)
async def analyze_site(
    input: AnalyzeSiteRequest, checker: TagChecker = Depends(get_checker)
) -> SiteEstimate:
    try:
        return await checker.estimate_site(input.url)
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))
