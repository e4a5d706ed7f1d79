"""
Analytics API Routes
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from bizpulse.core.database import get_db
from bizpulse.core.dates import parse_date_range
from bizpulse.core.responses import api_response
from bizpulse.core.security import get_current_user
from bizpulse.schemas import TokenPayload, TrendPeriod
from bizpulse.services.analytics_service import AnalyticsService

router = APIRouter(prefix="/analytics", tags=["Analytics"])


@router.get("/expenses")
async def get_expense_analysis(
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    db: Session = Depends(get_db),
    current_user: TokenPayload = Depends(get_current_user)
):
    """Expenses by category with their share of the total"""
    start, end = parse_date_range(start_date, end_date)
    return api_response(data=AnalyticsService(db).get_expense_analysis(current_user.business_id, start, end))


@router.get("/product-performance")
async def get_product_performance(
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    db: Session = Depends(get_db),
    current_user: TokenPayload = Depends(get_current_user)
):
    start, end = parse_date_range(start_date, end_date)
    return api_response(data=AnalyticsService(db).get_product_performance(current_user.business_id, start, end))


@router.get("/cash-flow")
async def get_cash_flow(
    period: TrendPeriod = TrendPeriod.MONTHLY,
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    db: Session = Depends(get_db),
    current_user: TokenPayload = Depends(get_current_user)
):
    start, end = parse_date_range(start_date, end_date)
    return api_response(data=AnalyticsService(db).get_cash_flow(current_user.business_id, period, start, end))
