"""
SCHEDULER JOB DEFINITIONS

Jobs are thin wrappers that:
- Log execution
- Record a job run log row
- Call the execution engine
- Never raise into the scheduler

NO business logic is allowed here.
"""

import logging
import time
from typing import Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from app.domain.models import JobRunStatus
from app.domain.services.execution_engine import ExecutionEngine
from app.infrastructure.db.database import get_session_factory
from app.infrastructure.db.repositories.job_run_log_repository import JobRunLogRepository
from app.utils.calendar import DateLike
from app.utils.notifications import notify_run_summary

_logger = logging.getLogger(__name__)

INSTALLMENT_JOB_NAME = "execute_due_installments"


# -------------------------------------------------------------------
# DAILY INSTALLMENT JOB
# -------------------------------------------------------------------

async def run_due_installments_job(
    session_factory: Optional[async_sessionmaker] = None,
    triggered_by: str = "SCHEDULE",
    current_date: Optional[DateLike] = None,
    engine: Optional[ExecutionEngine] = None,
) -> Optional[dict]:
    """
    Execute due installments and log the run.

    Returns:
        The run summary as a dict, or None when the run failed
    """
    factory = session_factory or get_session_factory()
    engine = engine or ExecutionEngine(factory, notifier=notify_run_summary)

    _logger.info(f"📅 Running {INSTALLMENT_JOB_NAME} (triggered by {triggered_by})")
    started = time.monotonic()

    async with factory() as session:
        run_id = await JobRunLogRepository(session).start(INSTALLMENT_JOB_NAME, triggered_by)
        await session.commit()

    status = JobRunStatus.SUCCESS
    result = None
    try:
        summary = await engine.run_due_installments(current_date)
        result = summary.to_dict()
        message = (
            f"target={summary.target_date} due={summary.total_due} "
            f"executed={summary.executed} failed={summary.failed} "
            f"skipped={summary.skipped} errors={summary.errors}"
        )
    except Exception as exc:
        _logger.exception(f"❌ {INSTALLMENT_JOB_NAME} failed")
        status = JobRunStatus.FAILED
        message = f"{type(exc).__name__}: {exc}"

    duration_ms = int((time.monotonic() - started) * 1000)
    try:
        async with factory() as session:
            await JobRunLogRepository(session).finish(run_id, status, duration_ms, message)
            await session.commit()
    except Exception:
        _logger.exception(f"Could not record job run {run_id}")

    return result
