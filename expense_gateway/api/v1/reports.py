"""GET /v1/reports/summary - dashboard spend aggregates"""

from datetime import date
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from expense_gateway.api.v1.schemas import SpendReportResponse
from expense_gateway.infrastructure.database.session import get_db
from expense_gateway.services.reports import ReportService

router = APIRouter()


@router.get("/reports/summary", response_model=SpendReportResponse)
def spend_summary(
    months: int = Query(3, ge=1, le=24, description="Months of history in the trend"),
    db: Session = Depends(get_db),
):
    """
    Spend summary for the dashboard.

    Returns:
        Month-to-date spend, card utilization, cards issued this month,
        spend by GL category, top vendors and the monthly trend
    """
    report = ReportService(db).spend_summary(date.today(), months=months)
    return SpendReportResponse.model_validate(report)
