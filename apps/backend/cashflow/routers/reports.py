from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from cashflow.core.database import get_db
from cashflow.core.deps import get_current_user, get_month
from cashflow import models
from cashflow.schemas import CalendarDayOut, DashboardSummaryOut, ReportsOverviewOut
from cashflow.services.report_service import FlowTotals, ReportService
from cashflow.services.storage import CashFlowRepository
from cashflow.utils.dates import month_key, shift_month

router = APIRouter(tags=["reports"])


def _totals_out(totals: FlowTotals) -> dict:
    return {"income": totals.income, "expense": totals.expense, "balance": totals.balance}


@router.get("/calendar", response_model=list[CalendarDayOut])
def get_calendar(
    month: date = Depends(get_month),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    days = ReportService(CashFlowRepository(db)).calendar(current_user.id, month)
    return [
        {
            "date": day.date,
            "transactions": day.transactions,
            "income": day.totals.income,
            "expense": day.totals.expense,
            "net": day.totals.balance,
        }
        for day in days
    ]


@router.get("/dashboard/summary", response_model=DashboardSummaryOut)
def get_dashboard_summary(
    month: date = Depends(get_month),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    summary = ReportService(CashFlowRepository(db)).dashboard_summary(current_user.id, month)
    return {
        "month": month_key(summary.month),
        "income": summary.totals.income,
        "expense": summary.totals.expense,
        "balance": summary.totals.balance,
        "categories": [
            {"category": name, "income": totals.income, "expense": totals.expense}
            for name, totals in sorted(summary.categories.items())
        ],
    }


@router.get("/reports/overview", response_model=ReportsOverviewOut)
def get_reports_overview(
    months: int = Query(6, ge=1, le=24),
    today: date | None = Query(None),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    anchor = today or models.now_local_naive().date()
    overview = ReportService(CashFlowRepository(db)).overview(current_user.id, today=anchor, months=months)
    expenses = sorted(overview["expenses_by_category"].items(), key=lambda item: (-item[1], item[0]))
    return {
        "start_month": month_key(shift_month(anchor.replace(day=1), -(months - 1))),
        "end_month": month_key(anchor),
        "monthly": [
            {"month": key, **_totals_out(t)}
            for key, t in overview["monthly"].items()
        ],
        "expenses_by_category": [{"category": name, "amount": amount} for name, amount in expenses],
        "current_month": _totals_out(overview["current"]),
        "previous_month": _totals_out(overview["previous"]),
    }
