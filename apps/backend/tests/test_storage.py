from __future__ import annotations

from decimal import Decimal

from cashflow import models
from cashflow.services.storage import CashFlowRepository


def test_set_primary_account_clears_other_primaries(db_session, demo_user, primary_account):
    savings = models.Account(user_id=demo_user.id, name="Poupanca", balance=Decimal("10"))
    db_session.add(savings)
    db_session.commit()

    repo = CashFlowRepository(db_session)
    assert repo.set_primary_account(demo_user.id, savings.id) is savings
    db_session.commit()

    db_session.refresh(primary_account)
    db_session.refresh(savings)
    assert savings.is_primary is True
    assert primary_account.is_primary is False
    assert [a.id for a in repo.list_accounts(demo_user.id)] == [savings.id, primary_account.id]


def test_set_primary_account_ignores_other_owners(db_session, demo_user, primary_account):
    other = models.User(email="other@example.com", is_active=True)
    db_session.add(other)
    db_session.flush()
    foreign = models.Account(user_id=other.id, name="Conta", balance=Decimal("0"), is_primary=True)
    db_session.add(foreign)
    db_session.commit()

    repo = CashFlowRepository(db_session)
    assert repo.set_primary_account(demo_user.id, foreign.id) is None
    # Another owner's primary flag is untouched by a change for demo_user
    assert repo.set_primary_account(demo_user.id, primary_account.id) is primary_account
    db_session.commit()
    db_session.refresh(foreign)
    assert foreign.is_primary is True
