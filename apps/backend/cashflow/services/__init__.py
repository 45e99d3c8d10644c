"""
Services package

Cash-flow core and the month-scoped read models built on it.
"""

from .cash_flow_service import CashFlowProjector, compute_cash_flow, find_negative_balance
from .occurrence_service import OccurrenceGenerator, project_occurrences
from .report_service import ReportService
from .storage import CashFlowRepository
from .transaction_service import AccountBalanceService

__all__ = [
    "AccountBalanceService",
    "CashFlowProjector",
    "CashFlowRepository",
    "OccurrenceGenerator",
    "ReportService",
    "compute_cash_flow",
    "find_negative_balance",
    "project_occurrences",
]
