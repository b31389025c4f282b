from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from tagscope.api.router import api_router
from tagscope.config.settings import get_settings
from tagscope.utils.logger import setup_logging

log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    setup_logging()
    settings = get_settings()
    log.info("server_start", host=settings.host, port=settings.port, target_account=settings.target_account)
    yield


app = FastAPI(
    title="tagscope",
    version="0.1.0",
    description="Tag-management detection, escalation and crawl coverage analysis",
    lifespan=lifespan,
)

app.include_router(api_router, prefix="/api")


def main() -> None:
    import uvicorn

    settings = get_settings()
    uvicorn.run("tagscope.server:app", host=settings.host, port=settings.port)
