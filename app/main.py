"""Tracionar — FastAPI Application Entry Point.

Meta Ads sync, weighted KPI rollups, campaign alerts and cached AI insights.
"""

import os
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from app.ai.insight_cache import insight_cache
from app.api.account_routes import router as account_router
from app.api.ai_routes import router as ai_router
from app.api.analytics_routes import router as analytics_router
from app.core.logging import get_logger
from app.database import _mask_url, db_url, init_db, test_connection
from app.scheduler.jobs import scheduler, start_scheduler, stop_scheduler

logger = get_logger("main")

IS_SERVERLESS = bool(
    os.environ.get("VERCEL") or os.environ.get("AWS_LAMBDA_FUNCTION_NAME")
)

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle."""
    logger.info(f"🚀 Tracionar {VERSION} starting ({'serverless' if IS_SERVERLESS else 'local'})")
    if test_connection():
        try:
            init_db()
        except SQLAlchemyError as e:
            logger.error(f"❌ Table creation failed: {e}")
    else:
        logger.error("❌ Database NOT connected, endpoints will fail")

    # Serverless functions freeze between requests; syncs run on the request loop there
    if not IS_SERVERLESS:
        start_scheduler()
    yield
    stop_scheduler()
    logger.info("Tracionar shut down")


app = FastAPI(
    title="Tracionar",
    description="Sync Meta ad accounts, roll up weighted KPIs, flag at-risk campaigns and generate AI insights.",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.monotonic()
    response = await call_next(request)
    logger.info(
        f"{request.method} {request.url.path} → {response.status_code}",
        extra={
            "endpoint": request.url.path,
            "status_code": response.status_code,
            "duration_ms": int((time.monotonic() - started) * 1000),
        },
    )
    return response


@app.exception_handler(Exception)
async def unhandled_error(request: Request, exc: Exception):
    logger.error(
        f"Unhandled error on {request.url.path}: {exc}",
        exc_info=exc,
        extra={"endpoint": request.url.path},
    )
    return JSONResponse(
        status_code=500,
        content={"detail": {"error": "Internal server error", "code": "INTERNAL_ERROR"}},
    )


app.include_router(account_router)
app.include_router(analytics_router)
app.include_router(ai_router)


@app.get("/health", tags=["System"])
async def health_check():
    return {
        "status": "healthy",
        "service": "tracionar",
        "version": VERSION,
        "scheduler_running": scheduler.running,
        "cached_insights": len(insight_cache),
    }


@app.get("/debug/db", tags=["System"])
async def debug_db():
    """Database connectivity, backend and masked URL."""
    return {
        "connected": test_connection(),
        "backend": "postgresql" if db_url.startswith("postgresql") else "sqlite",
        "url": _mask_url(db_url),
        "environment": "serverless" if IS_SERVERLESS else "local",
    }
