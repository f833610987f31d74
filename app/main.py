"""
FastAPI Main Application
Paper-trading API plus the daily installment scheduler
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from typing import AsyncGenerator
import logging

from app.config import settings
from app.core.logging import setup_logging
from app.domain.errors import AppError
from app.infrastructure.db.database import init_db, close_db
from app.scheduler.main import InstallmentScheduler

setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager
    Handles startup and shutdown of the database and scheduler
    """
    # ===================
    # STARTUP
    # ===================
    logger.info("=" * 60)
    logger.info("🚀 Starting MF Paper Trading")
    logger.info("=" * 60)

    await init_db()
    logger.info("✅ Database initialized")

    app.state.scheduler = None
    if settings.SCHEDULER_ENABLED:
        try:
            scheduler = InstallmentScheduler()
            scheduler.start()
            app.state.scheduler = scheduler
            logger.info(f"✅ Scheduler started ({settings.SCHEDULER_RUN_TIME} {settings.TIMEZONE})")
        except Exception as e:
            logger.error(f"❌ Failed to start scheduler: {e}")
    else:
        logger.info("⏰ Scheduler disabled")

    logger.info(f"   ✅ API Server: http://{settings.API_HOST}:{settings.API_PORT}")
    logger.info(f"   ✅ API Docs: http://{settings.API_HOST}:{settings.API_PORT}/docs")

    yield

    # ===================
    # SHUTDOWN
    # ===================
    logger.info("🛑 Shutting down MF Paper Trading...")
    if app.state.scheduler:
        app.state.scheduler.stop()

    await close_db()
    logger.info("✅ Database connections closed")


def create_app() -> FastAPI:
    app = FastAPI(
        title="Mutual Fund Paper Trading",
        description="Simulated SIP / SWP / STP and lump-sum investing against fund NAVs",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    from app.api.routes import admin, health, plans, portfolio

    app.include_router(health.router, tags=["Health"])
    app.include_router(plans.router, prefix="/api/v1/plans", tags=["Plans"])
    app.include_router(portfolio.router, prefix="/api/v1/portfolio", tags=["Portfolio"])
    app.include_router(admin.router, prefix="/api/v1/admin", tags=["Admin"])

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app.main:app", host=settings.API_HOST, port=settings.API_PORT, reload=settings.DEBUG)
