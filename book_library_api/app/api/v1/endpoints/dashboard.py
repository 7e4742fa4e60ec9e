"""
Dashboard endpoints for API v1.

Both routes aggregate over the authenticated user's books only.
"""

from fastapi import APIRouter, Depends, Query

from book_library_api.app.core.security import get_current_user
from book_library_api.app.schemas.dashboard import (
    AnalyticsPeriod,
    DashboardAnalyticsResponse,
    DashboardStatsResponse,
)
from book_library_api.app.services.analytics_service import DEFAULT_PERIOD, AnalyticsService
from book_library_api.app.services.statistics_service import StatisticsService


router = APIRouter()


@router.get("/stats", response_model=DashboardStatsResponse)
async def dashboard_stats(current_user: dict = Depends(get_current_user)) -> DashboardStatsResponse:
    """Summary figures for the dashboard landing page."""
    stats = await StatisticsService.dashboard_stats(current_user["user_id"])
    return DashboardStatsResponse(data=stats)


@router.get("/analytics", response_model=DashboardAnalyticsResponse)
async def dashboard_analytics(
    period: AnalyticsPeriod = Query(DEFAULT_PERIOD),
    current_user: dict = Depends(get_current_user),
) -> DashboardAnalyticsResponse:
    """Reading activity for the selected period (`week`, `month` or `year`)."""
    report = await AnalyticsService.analytics(current_user["user_id"], period)
    return DashboardAnalyticsResponse(data=report)
