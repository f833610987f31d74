"""
Notification Repository
"""

from typing import List

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.models import NotificationLevel
from app.infrastructure.db.models import NotificationModel
from app.utils.time import now_local_naive


class NotificationRepository:
    """Repository for the per-user inbox"""

    def __init__(self, session: AsyncSession):
        """Initialize with database session"""
        self.session = session

    async def create(
        self,
        user_id: int,
        title: str,
        message: str,
        level: NotificationLevel = NotificationLevel.INFO,
    ) -> int:
        model = NotificationModel(
            user_id=user_id,
            title=title[:200],
            message=message,
            level=level,
            is_read=False,
            created_at=now_local_naive(),
        )
        self.session.add(model)
        await self.session.flush()
        return model.id

    async def list_for_user(
        self,
        user_id: int,
        unread_only: bool = False,
        limit: int = 50,
    ) -> List[dict]:
        stmt = select(NotificationModel).where(NotificationModel.user_id == user_id)
        if unread_only:
            stmt = stmt.where(NotificationModel.is_read.is_(False))
        result = await self.session.execute(
            stmt.order_by(NotificationModel.created_at.desc(), NotificationModel.id.desc())
            .limit(limit)
        )
        return [
            {
                "id": m.id,
                "title": m.title,
                "message": m.message,
                "level": m.level.value,
                "is_read": m.is_read,
                "created_at": m.created_at.isoformat(),
            }
            for m in result.scalars().all()
        ]

    async def mark_all_read(self, user_id: int) -> int:
        result = await self.session.execute(
            update(NotificationModel)
            .where(NotificationModel.user_id == user_id, NotificationModel.is_read.is_(False))
            .values(is_read=True)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount
