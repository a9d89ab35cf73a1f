"""
Analytics API endpoints
Dashboard statistics computed over the caller's visible cases only
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
from dataclasses import asdict

from database import get_db
from middleware.rbac import get_current_actor
from models_auth import Actor
from schemas import BreakdownResponse, CaseSummaryResponse
from services import aggregation, case_service
from services.aggregation import Dimension

router = APIRouter(prefix="/analytics", tags=["analytics"])


@router.get("/summary", response_model=CaseSummaryResponse)
async def get_summary(
    region: Optional[str] = Query(None, description="Narrow to one region"),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    """
    Totals per status, pending count and resolution rate

    The region filter can only narrow what the caller already sees.
    """
    scoped = (await case_service.list_cases(db, actor)).narrow(region)
    summary = aggregation.summarize(scoped)
    return CaseSummaryResponse(**asdict(summary), region=region)


@router.get("/breakdown/{dimension}", response_model=BreakdownResponse)
async def get_breakdown(
    dimension: Dimension,
    region: Optional[str] = Query(None, description="Narrow to one region"),
    top: Optional[int] = Query(None, ge=1, le=100, description="Keep only the first N items"),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    """
    Ordered breakdown along one dimension

    Age buckets in band order, months chronologically (last 12 by default),
    every other dimension by count descending.
    """
    scoped = (await case_service.list_cases(db, actor)).narrow(region)
    items = aggregation.aggregate(scoped, dimension, top=top)
    return BreakdownResponse(
        dimension=dimension.value,
        total_cases=len(scoped),
        items=[asdict(item) for item in items],
    )
