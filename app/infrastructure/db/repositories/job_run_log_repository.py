"""
Job Run Log Repository
One row per scheduler job invocation
"""

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.models import JobRunStatus
from app.infrastructure.db.models import JobRunLogModel
from app.utils.time import now_local_naive


class JobRunLogRepository:
    """Repository for job run logs"""

    def __init__(self, session: AsyncSession):
        """Initialize with database session"""
        self.session = session

    async def start(self, job_name: str, triggered_by: str = "SCHEDULE") -> int:
        model = JobRunLogModel(
            job_name=job_name,
            status=JobRunStatus.RUNNING,
            triggered_by=triggered_by,
            started_at=now_local_naive(),
        )
        self.session.add(model)
        await self.session.flush()
        return model.id

    async def finish(
        self,
        run_id: int,
        status: JobRunStatus,
        duration_ms: int,
        message: Optional[str] = None,
    ) -> None:
        model = await self.session.get(JobRunLogModel, run_id)
        if model is None:
            return
        model.status = status
        model.finished_at = now_local_naive()
        model.duration_ms = duration_ms
        model.message = message
        await self.session.flush()

    async def recent(self, job_name: Optional[str] = None, limit: int = 20) -> List[dict]:
        stmt = select(JobRunLogModel)
        if job_name:
            stmt = stmt.where(JobRunLogModel.job_name == job_name)
        result = await self.session.execute(
            stmt.order_by(JobRunLogModel.started_at.desc(), JobRunLogModel.id.desc()).limit(limit)
        )
        return [
            {
                "id": m.id,
                "job_name": m.job_name,
                "status": m.status.value,
                "triggered_by": m.triggered_by,
                "started_at": m.started_at.isoformat(),
                "finished_at": m.finished_at.isoformat() if m.finished_at else None,
                "duration_ms": m.duration_ms,
                "message": m.message,
            }
            for m in result.scalars().all()
        ]
