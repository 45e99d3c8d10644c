from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from zoneinfo import ZoneInfo
from enum import Enum

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    Index,
    Boolean,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .core.config import settings
from .core.database import Base


try:
    LOCAL_ZONE = ZoneInfo(getattr(settings, "TIMEZONE", "America/Sao_Paulo"))
except Exception:
    LOCAL_ZONE = ZoneInfo("America/Sao_Paulo")


def now_local_naive() -> datetime:
    """Return naive datetime normalized to configured local timezone."""
    return datetime.now(LOCAL_ZONE).replace(tzinfo=None)


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(DateTime, default=now_local_naive, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=now_local_naive, onupdate=now_local_naive, nullable=False)


class User(Base, TimestampMixin):
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    is_active: Mapped[bool] = mapped_column(default=True, nullable=False)

    profile: Mapped["UserProfile"] = relationship(back_populates="user", uselist=False)


class UserProfile(Base, TimestampMixin):
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("user.id"), unique=True, nullable=False)
    display_name: Mapped[str | None] = mapped_column(String(100))
    base_currency: Mapped[str | None] = mapped_column(String(3))
    timezone: Mapped[str | None] = mapped_column(String(64))

    user: Mapped[User] = relationship(back_populates="profile")


class Account(Base, TimestampMixin):
    """Place where money is kept; its balance seeds every cash-flow projection."""

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("user.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    balance: Mapped[Decimal] = mapped_column(Numeric(18, 2), default=Decimal("0"), nullable=False)
    is_primary: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    user: Mapped["User"] = relationship("User", backref="accounts")

    __table_args__ = (
        UniqueConstraint("user_id", "name", name="uq_account_name"),
    )


class TxnType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"


def _enum_values(enum_cls: type[Enum]) -> list[str]:
    return [member.value for member in enum_cls]


class RecurringRule(Base, TimestampMixin):
    """Monthly recurring income/expense definition.

    ``day_of_month`` is stored exactly as entered (1-31); clamping to short
    months happens when an occurrence is evaluated. ``current_installment`` is
    only advanced by occurrence generation.
    """

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("user.id"), nullable=False)
    type: Mapped[TxnType] = mapped_column(SAEnum(TxnType, name="txn_type", values_callable=_enum_values), nullable=False)
    description: Mapped[str] = mapped_column(String(200), nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    day_of_month: Mapped[int] = mapped_column(Integer, nullable=False)
    account_id: Mapped[int | None] = mapped_column(ForeignKey("account.id", ondelete="SET NULL"))
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    total_installments: Mapped[int | None] = mapped_column(Integer)
    current_installment: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    account: Mapped["Account | None"] = relationship("Account", foreign_keys=[account_id])

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_recurring_amount_positive"),
        CheckConstraint("day_of_month BETWEEN 1 AND 31", name="ck_recurring_day_of_month"),
        CheckConstraint("current_installment >= 1", name="ck_recurring_current_installment"),
        CheckConstraint(
            "total_installments IS NULL OR total_installments >= 1",
            name="ck_recurring_total_installments",
        ),
        CheckConstraint("end_date IS NULL OR end_date >= start_date", name="ck_recurring_date_window"),
        Index("ix_recurring_user_active", "user_id", "is_active"),
    )


class Transaction(Base, TimestampMixin):
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("user.id"), nullable=False)
    type: Mapped[TxnType] = mapped_column(SAEnum(TxnType, name="txn_type", values_callable=_enum_values), nullable=False)
    description: Mapped[str] = mapped_column(String(200), nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    # Settlement date: the day the money actually moves
    occurred_at: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date | None] = mapped_column(Date)
    payment_method: Mapped[str | None] = mapped_column(String(30))
    account_id: Mapped[int | None] = mapped_column(ForeignKey("account.id", ondelete="SET NULL"))
    is_paid: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    recurring_rule_id: Mapped[int | None] = mapped_column(ForeignKey("recurringrule.id"))

    account: Mapped["Account | None"] = relationship("Account", foreign_keys=[account_id])
    recurring_rule: Mapped["RecurringRule | None"] = relationship(
        "RecurringRule",
        backref="generated_transactions",
        foreign_keys=[recurring_rule_id],
    )

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_txn_amount_positive"),
        Index("ix_txn_user_date", "user_id", "occurred_at"),
        Index("ix_txn_user_due_date", "user_id", "due_date"),
        Index("ix_txn_recurring_rule", "recurring_rule_id"),
    )

    @property
    def signed_amount(self) -> Decimal:
        magnitude = Decimal(str(self.amount or 0))
        if self.type == TxnType.EXPENSE:
            return -magnitude
        return magnitude
