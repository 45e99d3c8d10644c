"""
Utils package
"""

from .dates import (
    month_bounds,
    month_key,
    parse_date_only,
    parse_month,
    shift_month,
)

__all__ = [
    "month_bounds",
    "month_key",
    "parse_date_only",
    "parse_month",
    "shift_month",
]
