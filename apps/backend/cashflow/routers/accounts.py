"""Read-only account listing; account management lives outside this service."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from cashflow.core.database import get_db
from cashflow.core.deps import get_current_user
from cashflow.schemas import AccountListOut
from cashflow.services.cash_flow_service import total_balance
from cashflow.services.storage import CashFlowRepository
from cashflow import models

router = APIRouter(prefix="/accounts", tags=["accounts"])


@router.get("", response_model=AccountListOut)
def list_accounts(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    accounts = CashFlowRepository(db).list_accounts(current_user.id)
    return {"accounts": accounts, "total_balance": total_balance(accounts)}
