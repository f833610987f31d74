"""
Recurring Plan Routes
SIP / SWP / STP creation, preview and lifecycle
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from pydantic import BaseModel, Field
from typing import Literal, Optional
from decimal import Decimal
import logging

from app.api.deps import get_current_user_id
from app.config import settings
from app.domain.services.schedule_preview import MAX_PREVIEW_INSTALLMENTS, generate_preview
from app.infrastructure.db.database import get_db
from app.services.plan_service import PlanService

logger = logging.getLogger(__name__)
router = APIRouter()


# ------------------------------------------------------------------
# Request Models
# ------------------------------------------------------------------

class PreviewRequest(BaseModel):
    start_date: str = Field(..., description="YYYY-MM-DD or ISO datetime")
    end_date: Optional[str] = Field(None, description="YYYY-MM-DD (inclusive)")
    frequency: str = Field(..., description="DAILY / WEEKLY / MONTHLY / QUARTERLY / YEARLY")
    installments: Optional[int] = Field(None, gt=0)


class CreatePlanRequest(BaseModel):
    scheme_code: int = Field(..., gt=0)
    transaction_type: Literal["SIP", "SWP", "STP"]
    amount: Decimal = Field(..., gt=0)
    frequency: str
    start_date: Optional[str] = Field(None, description="YYYY-MM-DD (default: today)")
    end_date: Optional[str] = None
    installments: Optional[int] = Field(None, gt=0)
    source_scheme_code: Optional[int] = Field(None, gt=0, description="STP only")


# ------------------------------------------------------------------
# PREVIEW
# ------------------------------------------------------------------

@router.post("/preview")
async def preview_schedule(request: PreviewRequest):
    """Installment dates the plan would execute on (capped)"""
    dates = generate_preview(
        request.start_date,
        request.end_date,
        request.frequency,
        tz=settings.TIMEZONE,
        installments=request.installments,
    )
    return {
        "dates": dates,
        "count": len(dates),
        "capped": len(dates) == MAX_PREVIEW_INSTALLMENTS,
    }


# ------------------------------------------------------------------
# PLANS
# ------------------------------------------------------------------

@router.post("", status_code=201)
async def create_plan(
    request: CreatePlanRequest,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    plan = await PlanService(db).create_plan(
        user_id=user_id,
        scheme_code=request.scheme_code,
        transaction_type=request.transaction_type,
        amount=request.amount,
        frequency=request.frequency,
        start_date=request.start_date,
        end_date=request.end_date,
        installments=request.installments,
        source_scheme_code=request.source_scheme_code,
    )
    return plan.to_dict()


@router.get("")
async def list_plans(
    status: Optional[str] = Query(None, description="ACTIVE / PAUSED / CANCELLED / COMPLETED"),
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    plans = await PlanService(db).list_plans(user_id, status=status)
    return {"plans": [p.to_dict() for p in plans], "count": len(plans)}


@router.get("/{plan_id}")
async def get_plan(
    plan_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    plan = await PlanService(db).get_plan(user_id, plan_id)
    return plan.to_dict()


@router.get("/{plan_id}/executions")
async def get_plan_executions(
    plan_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    records = await PlanService(db).get_plan_executions(user_id, plan_id)
    return {"plan_id": plan_id, "executions": [r.to_dict() for r in records]}


# ------------------------------------------------------------------
# LIFECYCLE
# ------------------------------------------------------------------

@router.post("/{plan_id}/cancel")
async def cancel_plan(
    plan_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await PlanService(db).cancel_plan(user_id, plan_id)


@router.post("/{plan_id}/pause")
async def pause_plan(
    plan_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    plan = await PlanService(db).pause_plan(user_id, plan_id)
    return plan.to_dict()


@router.post("/{plan_id}/resume")
async def resume_plan(
    plan_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    plan = await PlanService(db).resume_plan(user_id, plan_id)
    return plan.to_dict()
