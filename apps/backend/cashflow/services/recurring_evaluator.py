"""Monthly due-date rules for recurring definitions.

Pure functions: the verdict depends only on the rule's fields and the month
window, and nothing here touches ``current_installment``.
"""

from __future__ import annotations

from datetime import date


def installments_exhausted(rule) -> bool:
    total = rule.total_installments
    if not total:
        return False
    return (rule.current_installment or 1) > total


def is_due_in_month(rule, month_start: date, month_end: date) -> bool:
    if rule.start_date is not None and rule.start_date > month_end:
        return False
    if rule.end_date is not None and rule.end_date < month_start:
        return False
    if installments_exhausted(rule):
        return False
    return True


def occurrence_date(rule, month_start: date, month_end: date) -> date | None:
    """Day this month on which ``rule`` lands, or ``None`` when it is not due.

    Day 31 becomes the 30th in April and the 28th/29th in February; an
    occurrence never spills into the next month.
    """
    if not is_due_in_month(rule, month_start, month_end):
        return None
    day = min(int(rule.day_of_month), month_end.day)
    return month_start.replace(day=day)


def installment_label(rule) -> str | None:
    if not rule.total_installments:
        return None
    return f"({rule.current_installment}/{rule.total_installments})"
