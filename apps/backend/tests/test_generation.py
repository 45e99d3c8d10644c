from __future__ import annotations

import gc
import threading
from datetime import date
from decimal import Decimal

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from cashflow import models
from cashflow.services.occurrence_service import _GENERATION_LOCKS, OccurrenceGenerator, _generation_lock
from cashflow.services.storage import CashFlowRepository


def _add_rule(db, user_id, **overrides):
    values = dict(
        user_id=user_id,
        type=models.TxnType.EXPENSE,
        description="Notebook",
        category="compras",
        amount=Decimal("300"),
        day_of_month=31,
        start_date=date(2025, 1, 1),
        total_installments=None,
        current_installment=1,
    )
    values.update(overrides)
    rule = models.RecurringRule(**values)
    db.add(rule)
    db.commit()
    return rule


def test_generation_is_idempotent_per_month(db_session, demo_user):
    rule = _add_rule(db_session, demo_user.id)
    generator = OccurrenceGenerator(db_session)

    created = generator.generate_occurrences_for_month(demo_user.id, date(2025, 2, 1))
    assert len(created) == 1
    txn = created[0]
    assert txn.recurring_rule_id == rule.id
    assert txn.occurred_at == date(2025, 2, 28)
    assert txn.due_date == date(2025, 2, 28)
    assert txn.is_paid is False

    assert generator.generate_occurrences_for_month(demo_user.id, date(2025, 2, 1)) == []
    count = (
        db_session.query(models.Transaction)
        .filter(models.Transaction.recurring_rule_id == rule.id)
        .count()
    )
    assert count == 1


def test_installments_advance_until_exhausted(db_session, demo_user):
    rule = _add_rule(db_session, demo_user.id, total_installments=3, day_of_month=5)
    generator = OccurrenceGenerator(db_session)

    descriptions = []
    for month in (1, 2, 3):
        created = generator.generate_occurrences_for_month(demo_user.id, date(2025, month, 1))
        assert len(created) == 1
        descriptions.append(created[0].description)

    assert descriptions == ["Notebook (1/3)", "Notebook (2/3)", "Notebook (3/3)"]
    db_session.refresh(rule)
    assert rule.current_installment == 4
    assert generator.generate_occurrences_for_month(demo_user.id, date(2025, 4, 1)) == []


def test_open_ended_rules_also_bump_the_counter(db_session, demo_user):
    rule = _add_rule(db_session, demo_user.id, description="Internet")
    generator = OccurrenceGenerator(db_session)
    created = generator.generate_occurrences_for_month(demo_user.id, date(2025, 3, 1))
    assert created[0].description == "Internet"
    db_session.refresh(rule)
    assert rule.current_installment == 2


def test_inactive_and_out_of_window_rules_are_skipped(db_session, demo_user):
    _add_rule(db_session, demo_user.id, is_active=False)
    _add_rule(db_session, demo_user.id, description="Curso", start_date=date(2025, 6, 1))
    _add_rule(db_session, demo_user.id, description="Academia", end_date=date(2025, 1, 31))
    created = OccurrenceGenerator(db_session).generate_occurrences_for_month(demo_user.id, date(2025, 3, 1))
    assert created == []


class _FlakyRepository(CashFlowRepository):
    def __init__(self, db, failing_rule_id):
        super().__init__(db)
        self.failing_rule_id = failing_rule_id

    def insert_transactions(self, rows):
        rows = list(rows)
        if any(row["recurring_rule_id"] == self.failing_rule_id for row in rows):
            raise SQLAlchemyError("disk full")
        return super().insert_transactions(rows)


def test_one_failing_rule_does_not_block_the_batch(db_session, demo_user):
    ok_rule = _add_rule(db_session, demo_user.id, description="Luz", day_of_month=3)
    bad_rule = _add_rule(db_session, demo_user.id, description="Agua", day_of_month=4)
    ok_id, bad_id = ok_rule.id, bad_rule.id

    generator = OccurrenceGenerator(db_session, _FlakyRepository(db_session, bad_id))
    created = generator.generate_occurrences_for_month(demo_user.id, date(2025, 3, 1))

    assert [t.recurring_rule_id for t in created] == [ok_id]
    assert generator.failed_rule_ids == [bad_id]
    # The failed rule keeps its counter and can be retried
    bad = db_session.get(models.RecurringRule, bad_id)
    assert bad.current_installment == 1
    retried = OccurrenceGenerator(db_session).generate_occurrences_for_month(demo_user.id, date(2025, 3, 1))
    assert [t.recurring_rule_id for t in retried] == [bad_id]


def test_generation_is_scoped_to_owner(db_session, demo_user):
    other = models.User(email="other@example.com", is_active=True)
    db_session.add(other)
    db_session.commit()
    _add_rule(db_session, other.id)

    assert OccurrenceGenerator(db_session).generate_occurrences_for_month(demo_user.id, date(2025, 3, 1)) == []
    assert len(OccurrenceGenerator(db_session).generate_occurrences_for_month(other.id, date(2025, 3, 1))) == 1


def test_concurrent_generation_for_same_month_runs_once(engine, db_session, demo_user):
    rule = _add_rule(db_session, demo_user.id, total_installments=3, day_of_month=10)
    user_id, rule_id = demo_user.id, rule.id
    ThreadSession = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    workers = 6
    barrier = threading.Barrier(workers)
    results: list[int] = []
    errors: list[Exception] = []
    guard = threading.Lock()

    def run():
        session = ThreadSession()
        try:
            barrier.wait()
            created = OccurrenceGenerator(session).generate_occurrences_for_month(user_id, date(2025, 3, 1))
            with guard:
                results.append(len(created))
        except Exception as exc:
            with guard:
                errors.append(exc)
        finally:
            session.close()

    threads = [threading.Thread(target=run) for _ in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    assert errors == []
    assert sorted(results) == [0] * (workers - 1) + [1]
    db_session.rollback()
    rows = (
        db_session.query(models.Transaction)
        .filter(models.Transaction.recurring_rule_id == rule_id)
        .count()
    )
    assert rows == 1
    assert db_session.get(models.RecurringRule, rule_id).current_installment == 2


def test_generation_lock_is_shared_per_month_and_released():
    lock = _generation_lock(42, date(2025, 3, 1))
    assert _generation_lock(42, date(2025, 3, 20)) is lock
    assert _generation_lock(42, date(2025, 4, 1)) is not lock

    del lock
    gc.collect()
    assert (42, "2025-03") not in _GENERATION_LOCKS
    assert (42, "2025-04") not in _GENERATION_LOCKS
