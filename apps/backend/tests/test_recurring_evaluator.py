from __future__ import annotations

from datetime import date
from decimal import Decimal
from types import SimpleNamespace

import pytest

from cashflow.models import TxnType
from cashflow.services.recurring_evaluator import (
    installment_label,
    is_due_in_month,
    occurrence_date,
)
from cashflow.utils.dates import month_bounds


def _rule(**overrides):
    values = dict(
        id=1,
        user_id=1,
        type=TxnType.EXPENSE,
        description="Aluguel",
        category="moradia",
        amount=Decimal("100"),
        day_of_month=10,
        account_id=None,
        start_date=date(2024, 1, 1),
        end_date=None,
        is_active=True,
        total_installments=None,
        current_installment=1,
    )
    values.update(overrides)
    return SimpleNamespace(**values)


@pytest.mark.parametrize(
    "month, expected",
    [
        (date(2025, 4, 1), date(2025, 4, 30)),
        (date(2025, 2, 1), date(2025, 2, 28)),
        (date(2024, 2, 1), date(2024, 2, 29)),
        (date(2025, 1, 1), date(2025, 1, 31)),
    ],
)
def test_day_31_is_clamped_to_month_end(month, expected):
    rule = _rule(day_of_month=31)
    assert occurrence_date(rule, *month_bounds(month)) == expected


def test_start_and_end_dates_bound_the_window():
    rule = _rule(start_date=date(2025, 3, 20), end_date=date(2025, 5, 2))
    assert not is_due_in_month(rule, *month_bounds(date(2025, 2, 1)))
    # Start date inside the month still counts for that month
    assert is_due_in_month(rule, *month_bounds(date(2025, 3, 1)))
    assert is_due_in_month(rule, *month_bounds(date(2025, 5, 1)))
    assert not is_due_in_month(rule, *month_bounds(date(2025, 6, 1)))


def test_exhausted_installments_are_never_due():
    rule = _rule(total_installments=3, current_installment=4)
    for month in range(1, 13):
        assert occurrence_date(rule, *month_bounds(date(2025, month, 1))) is None


def test_last_installment_is_still_due():
    rule = _rule(total_installments=3, current_installment=3)
    assert occurrence_date(rule, *month_bounds(date(2025, 3, 1))) == date(2025, 3, 10)


def test_evaluation_does_not_touch_the_counter():
    rule = _rule(total_installments=3, current_installment=2)
    occurrence_date(rule, *month_bounds(date(2025, 3, 1)))
    occurrence_date(rule, *month_bounds(date(2025, 3, 1)))
    assert rule.current_installment == 2


def test_installment_label():
    assert installment_label(_rule()) is None
    assert installment_label(_rule(total_installments=12, current_installment=5)) == "(5/12)"
