from __future__ import annotations

import os
import tempfile
from decimal import Decimal
from typing import Generator, Any

import pytest
from sqlalchemy.orm import sessionmaker

from cashflow.core.database import Base, create_db_engine, get_db
from cashflow.main import app
from cashflow import models
from cashflow.services.cash_flow_service import projection_cache


@pytest.fixture(scope="session")
def test_db_url() -> Generator[str, Any, Any]:
    # Temporary file database so the developer's db.sqlite3 is never touched
    fd, path = tempfile.mkstemp(prefix="cashflow_test_", suffix=".sqlite3")
    os.close(fd)
    url = f"sqlite:///{path}"
    yield url
    try:
        os.remove(path)
    except OSError:
        pass


@pytest.fixture(scope="session")
def engine(test_db_url: str):
    eng = create_db_engine(test_db_url)
    Base.metadata.create_all(eng)
    return eng


@pytest.fixture(scope="function")
def db_session(engine) -> Generator[Any, Any, Any]:
    TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = TestingSessionLocal()
    # Seed: demo owner (id 1) with a primary account at zero
    user = models.User(email="demo@example.com", is_active=True)
    session.add(user)
    session.flush()
    session.add(models.UserProfile(user_id=user.id, display_name="Demo", base_currency="BRL"))
    session.add(models.Account(user_id=user.id, name="Carteira", balance=Decimal("0"), is_primary=True))
    session.commit()

    try:
        yield session
    finally:
        session.close()
        with engine.begin() as conn:
            if engine.dialect.name == "sqlite":
                conn.exec_driver_sql("PRAGMA foreign_keys=OFF")
            for tbl in reversed(Base.metadata.sorted_tables):
                conn.execute(tbl.delete())
            if engine.dialect.name == "sqlite":
                conn.exec_driver_sql("PRAGMA foreign_keys=ON")


@pytest.fixture(autouse=True)
def override_dependency(db_session):
    # FastAPI DI override
    def _get_db_override():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = _get_db_override
    projection_cache.clear()
    yield
    app.dependency_overrides.clear()
    projection_cache.clear()


@pytest.fixture()
def client(db_session):
    from fastapi.testclient import TestClient
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def demo_user(db_session) -> models.User:
    return db_session.query(models.User).filter_by(email="demo@example.com").one()


@pytest.fixture()
def primary_account(db_session, demo_user) -> models.Account:
    return (
        db_session.query(models.Account)
        .filter_by(user_id=demo_user.id, is_primary=True)
        .one()
    )
