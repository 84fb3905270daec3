"""Main application entry point."""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator

from smartcompare.ai.llm_service import llm_service
from smartcompare.api.deps import close_history_store, get_history_store
from smartcompare.api.routes import history, reconcile
from smartcompare.config import settings
from smartcompare.errors import SmartCompareError
from smartcompare.logging_config import setup_logging

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("Starting SmartCompare...")
    get_history_store()
    if not llm_service.is_configured:
        logger.warning("API key missing: deal discovery and analysis run in demo mode")

    yield

    logger.info("Shutting down...")
    close_history_store()
    await llm_service.close()
    logger.info("Shutdown complete")


app = FastAPI(
    title="SmartCompare",
    description="Reconcile competitor listings and track price history",
    version="0.1.0",
    lifespan=lifespan,
)

instrumentator = Instrumentator(
    should_group_status_codes=True,
    should_ignore_untemplated=True,
    excluded_handlers=["/metrics", "/health"],
)
instrumentator.instrument(app).expose(app, include_in_schema=True, tags=["monitoring"])

app.include_router(reconcile.router)
app.include_router(history.router)


@app.exception_handler(SmartCompareError)
async def smartcompare_error_handler(request: Request, exc: SmartCompareError):
    logger.warning(f"Rejected {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


if __name__ == "__main__":
    uvicorn.run(
        "smartcompare.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
