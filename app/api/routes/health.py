from fastapi import APIRouter, Depends, Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.infrastructure.db.database import get_session_factory

router = APIRouter()


@router.get("/health")
async def health(
    request: Request,
    session_factory: async_sessionmaker = Depends(get_session_factory),
):
    db_status = "connected"
    try:
        async with session_factory() as session:
            await session.execute(text("SELECT 1"))
    except Exception:
        db_status = "error"

    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is None:
        scheduler_status = "disabled"
    else:
        scheduler_status = "running" if scheduler.running else "stopped"

    return {
        "status": "healthy" if db_status == "connected" else "degraded",
        "services": {"api": "running", "database": db_status, "scheduler": scheduler_status},
    }
