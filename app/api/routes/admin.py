"""
Admin Routes
Manual scheduler trigger, job logs, execution statistics, NAV seeding
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from pydantic import BaseModel, Field
from decimal import Decimal
from typing import List, Optional
import logging

from app.config import settings
from app.infrastructure.db.database import get_db, get_session_factory
from app.infrastructure.db.repositories.execution_repository import ExecutionRecordRepository
from app.infrastructure.db.repositories.job_run_log_repository import JobRunLogRepository
from app.infrastructure.db.repositories.nav_repository import FundNavRepository
from app.scheduler.jobs import INSTALLMENT_JOB_NAME, run_due_installments_job
from app.utils.calendar import to_calendar_string

logger = logging.getLogger(__name__)
router = APIRouter()


class RunRequest(BaseModel):
    date: Optional[str] = Field(None, description="Target day YYYY-MM-DD (default: today)")


class NavRow(BaseModel):
    scheme_code: int = Field(..., gt=0)
    nav_date: str = Field(..., description="YYYY-MM-DD")
    nav: Decimal = Field(..., gt=0)


class NavUpsertRequest(BaseModel):
    navs: List[NavRow] = Field(..., min_length=1)


@router.post("/scheduler/run")
async def trigger_installment_run(
    request: Optional[RunRequest] = None,
    session_factory: async_sessionmaker = Depends(get_session_factory),
):
    """Run the installment job now (idempotent for a given day)"""
    target = request.date if request else None
    logger.info(f"🔄 Manual installment run requested (date={target or 'today'})")

    summary = await run_due_installments_job(
        session_factory=session_factory,
        triggered_by="MANUAL",
        current_date=target,
    )
    if summary is None:
        raise HTTPException(status_code=500, detail="Installment run failed, see job logs")
    return summary


@router.get("/scheduler/logs")
async def get_job_logs(
    job_name: Optional[str] = Query(INSTALLMENT_JOB_NAME),
    limit: int = Query(20, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
):
    logs = await JobRunLogRepository(db).recent(job_name=job_name, limit=limit)
    return {"logs": logs, "count": len(logs)}


@router.get("/executions/stats")
async def get_execution_stats(
    start_date: Optional[str] = Query(None),
    end_date: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    start = to_calendar_string(start_date, settings.TIMEZONE) if start_date else None
    end = to_calendar_string(end_date, settings.TIMEZONE) if end_date else None
    stats = await ExecutionRecordRepository(db).get_statistics(start, end)
    return {"start_date": start, "end_date": end, "by_status": stats}


@router.get("/executions/failures")
async def get_recent_failures(
    limit: int = Query(20, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
):
    failures = await ExecutionRecordRepository(db).recent_failures(limit=limit)
    return {"failures": [f.to_dict() for f in failures], "count": len(failures)}


@router.post("/navs")
async def upsert_navs(
    request: NavUpsertRequest,
    db: AsyncSession = Depends(get_db),
):
    """Load NAV rows into the local store (stand-in for the ingestion feed)"""
    repo = FundNavRepository(db)
    for row in request.navs:
        await repo.upsert_nav(
            row.scheme_code,
            to_calendar_string(row.nav_date, settings.TIMEZONE),
            row.nav,
        )
    logger.info(f"📈 Upserted {len(request.navs)} NAV row(s)")
    return {"success": True, "count": len(request.navs)}
