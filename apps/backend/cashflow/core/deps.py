from __future__ import annotations

from datetime import date
from decimal import Decimal

from fastapi import Depends, HTTPException, Query
from sqlalchemy.orm import Session

from cashflow.core.database import get_db
from cashflow import models
from cashflow.utils.dates import parse_month


def get_current_user(db: Session = Depends(get_db)) -> models.User:
    """Very lightweight current user resolver.

    Authentication lives outside this service. For now this returns the first
    user (creating a demo owner with a primary account if none exists). Tests
    may override this dependency to simulate different owners.
    """
    user = db.query(models.User).order_by(models.User.id).first()
    if not user:
        user = models.User(email="demo@example.com", is_active=True)
        db.add(user)
        db.flush()
        db.add(models.UserProfile(user_id=user.id, display_name="Demo", base_currency="BRL"))
        db.add(models.Account(user_id=user.id, name="Carteira", balance=Decimal("0"), is_primary=True))
        db.commit()
        db.refresh(user)
    return user


def get_month(month: str = Query(..., description="Target month as YYYY-MM")) -> date:
    try:
        return parse_month(month)
    except ValueError:
        raise HTTPException(status_code=400, detail="month must be formatted as YYYY-MM")


def ensure_owned_account(db: Session, user_id: int, account_id: int | None) -> None:
    """404 unless ``account_id`` is empty or names one of ``user_id``'s accounts."""
    if account_id is None:
        return
    exists = (
        db.query(models.Account.id)
        .filter(models.Account.id == account_id, models.Account.user_id == user_id)
        .first()
    )
    if not exists:
        raise HTTPException(status_code=404, detail="Account not found")
