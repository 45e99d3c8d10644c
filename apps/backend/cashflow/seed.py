from __future__ import annotations

import logging
from decimal import Decimal

from .core.database import session_scope
from .core.logging_config import configure_logging
from .models import Account, User, UserProfile


logger = logging.getLogger(__name__)


def seed() -> None:
    with session_scope() as db:
        # Demo owner
        user = db.query(User).filter_by(email="demo@example.com").first()
        if not user:
            user = User(email="demo@example.com", is_active=True)
            db.add(user)
            db.flush()
            db.add(UserProfile(user_id=user.id, display_name="Demo", base_currency="BRL"))

        # Primary account so projections have a starting balance to read
        primary = db.query(Account).filter_by(user_id=user.id, is_primary=True).first()
        if not primary:
            db.add(Account(user_id=user.id, name="Carteira", balance=Decimal("0"), is_primary=True))
        logger.info("seeded demo owner %s", user.email)


if __name__ == "__main__":
    configure_logging()
    seed()
