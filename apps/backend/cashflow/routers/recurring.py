from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from cashflow.core.database import get_db
from cashflow.core.deps import ensure_owned_account, get_current_user, get_month
from cashflow import models
from cashflow.schemas import (
    RecurringGenerateOut,
    RecurringRuleCreate,
    RecurringRuleOut,
    RecurringRuleUpdate,
)
from cashflow.services.cash_flow_service import projection_cache
from cashflow.services.occurrence_service import OccurrenceGenerator
from cashflow.services.storage import CashFlowRepository
from cashflow.utils.dates import month_key

router = APIRouter(prefix="/recurring-rules", tags=["recurring"])


def _get_owned_rule(db: Session, user_id: int, rule_id: int) -> models.RecurringRule:
    rule = (
        db.query(models.RecurringRule)
        .filter(models.RecurringRule.id == rule_id, models.RecurringRule.user_id == user_id)
        .first()
    )
    if not rule:
        raise HTTPException(status_code=404, detail="RecurringRule not found")
    return rule


@router.get("", response_model=list[RecurringRuleOut])
def list_recurring_rules(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    return CashFlowRepository(db).list_active_recurring_rules(current_user.id)


@router.post("", response_model=RecurringRuleOut, status_code=201)
def create_recurring_rule(
    payload: RecurringRuleCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    ensure_owned_account(db, current_user.id, payload.account_id)
    rule = models.RecurringRule(user_id=current_user.id, current_installment=1, **payload.model_dump())
    db.add(rule)
    db.commit()
    db.refresh(rule)
    projection_cache.invalidate(current_user.id)
    return rule


@router.post("/generate", response_model=RecurringGenerateOut)
def generate_recurring_transactions(
    month: date = Depends(get_month),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    generator = OccurrenceGenerator(db)
    created = generator.generate_occurrences_for_month(current_user.id, month)
    if created:
        projection_cache.invalidate(current_user.id)
    return {
        "month": month_key(month),
        "created": created,
        "failed_rule_ids": generator.failed_rule_ids,
    }


@router.get("/{rule_id}", response_model=RecurringRuleOut)
def get_recurring_rule(
    rule_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    return _get_owned_rule(db, current_user.id, rule_id)


@router.patch("/{rule_id}", response_model=RecurringRuleOut)
def update_recurring_rule(
    rule_id: int,
    payload: RecurringRuleUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    rule = _get_owned_rule(db, current_user.id, rule_id)
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        return rule
    for key in ("type", "description", "category", "amount", "day_of_month", "start_date", "is_active"):
        if key in changes and changes[key] is None:
            raise HTTPException(status_code=400, detail=f"{key} must not be null")
    ensure_owned_account(db, current_user.id, changes.get("account_id"))

    start_date = changes.get("start_date", rule.start_date)
    end_date = changes.get("end_date", rule.end_date)
    if end_date is not None and end_date < start_date:
        raise HTTPException(status_code=400, detail="end_date must not be before start_date")

    for key, value in changes.items():
        setattr(rule, key, value)
    db.commit()
    db.refresh(rule)
    projection_cache.invalidate(current_user.id)
    return rule


@router.delete("/{rule_id}", status_code=204)
def delete_recurring_rule(
    rule_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    # Soft delete: generated transactions keep their back-reference
    rule = _get_owned_rule(db, current_user.id, rule_id)
    rule.is_active = False
    db.commit()
    projection_cache.invalidate(current_user.id)
    return None
