"""
Portfolio API Routes
Demo balance, holdings at latest NAV, cash ledger, lump-sum buys
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from pydantic import BaseModel, Field
from decimal import Decimal
import logging

from app.api.deps import get_current_user_id
from app.infrastructure.db.database import get_db
from app.services.plan_service import PlanService
from app.services.portfolio_service import PortfolioService

logger = logging.getLogger(__name__)
router = APIRouter()


class LumpSumRequest(BaseModel):
    scheme_code: int = Field(..., gt=0)
    amount: Decimal = Field(..., gt=0)


@router.get("")
async def get_portfolio(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await PortfolioService(db).get_portfolio(user_id)


@router.get("/balance")
async def get_balance(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await PortfolioService(db).get_balance(user_id)


@router.get("/ledger")
async def get_ledger(
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await PortfolioService(db).get_ledger(user_id, limit=limit, offset=offset)


@router.get("/notifications")
async def get_notifications(
    unread_only: bool = Query(False),
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    items = await PortfolioService(db).get_notifications(user_id, unread_only=unread_only)
    return {"notifications": items, "count": len(items)}


@router.post("/lump-sum", status_code=201)
async def invest_lump_sum(
    request: LumpSumRequest,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await PlanService(db).invest_lump_sum(user_id, request.scheme_code, request.amount)
