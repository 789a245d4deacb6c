"""Pytest fixtures for testing"""

import os

# Keep module-level engine creation off the production database
os.environ.setdefault("DATABASE_URL", "sqlite:///./envelope_ledger_test.db")

import pytest
from decimal import Decimal
from typing import Generator
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from envelope_ledger.api.main import create_app
from envelope_ledger.infrastructure.database.models import Base
from envelope_ledger.infrastructure.database.session import get_db
from envelope_ledger.services.budget import BudgetService

USER_ID = 1
OTHER_USER_ID = 2


@pytest.fixture
def engine(tmp_path):
    """File-backed SQLite so several sessions can share one database"""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'ledger.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory) -> Generator[Session, None, None]:
    """Create test database and session"""
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def client(db: Session) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


@pytest.fixture
def auth_headers() -> dict:
    return {"X-User-ID": str(USER_ID)}


@pytest.fixture
def budget(db: Session) -> BudgetService:
    return BudgetService(db, USER_ID)


@pytest.fixture
def checking(budget: BudgetService):
    """Checking account opened with 1000.00"""
    return budget.create_account("Everyday", "checking", Decimal("1000.00"))


@pytest.fixture
def groceries(budget: BudgetService):
    """Groceries envelope holding 300.00"""
    return budget.create_envelope("Groceries", opening_balance=Decimal("300.00"), budgeted_amount=Decimal("400.00"))


@pytest.fixture
def savings_envelope(budget: BudgetService):
    return budget.create_envelope("Savings", opening_balance=Decimal("0.00"))
