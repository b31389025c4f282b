from fastapi import APIRouter

from tagscope.config.settings import get_settings
from tagscope.models.api import HealthResponse

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    settings = get_settings()
    return HealthResponse(status="ok", version="0.1.0", target_account=settings.target_account)
