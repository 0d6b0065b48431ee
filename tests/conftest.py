"""Pytest fixtures for testing"""

import pytest
from datetime import date, timedelta
from typing import Any, Callable, Generator
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from expense_gateway.api.main import create_app
from expense_gateway.infrastructure.database.models import Base, Card, Invoice
from expense_gateway.infrastructure.database.session import get_db
from expense_gateway.services.cards import CardLifecycleManager
from expense_gateway.services.invoices import InvoicePaymentOrchestrator
from expense_gateway.services.wallet import WalletService


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


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
def fund_wallet(db: Session) -> Callable[[int], int]:
    """Add cents to the company wallet, returning the new balance"""

    def _fund(amount_cents: int) -> int:
        return WalletService(db).fund(amount_cents).balance_cents

    return _fund


@pytest.fixture
def make_card(db: Session) -> Callable[..., Card]:
    """Issue an Active card; keyword arguments override the defaults"""

    def _make(**overrides: Any) -> Card:
        spec = {
            "cardholder_name": "Sarah Johnson",
            "spend_limit_cents": 50000,
            "limit_type": "one-time",
            "transaction_count": "unlimited",
        }
        spec.update(overrides)
        return CardLifecycleManager(db).create_active_card(spec)

    return _make


@pytest.fixture
def make_invoice(db: Session) -> Callable[..., Invoice]:
    """Create a Pending invoice due in 30 days; keyword arguments override the defaults"""
    counter = {"n": 0}

    def _make(**overrides: Any) -> Invoice:
        counter["n"] += 1
        fields = {
            "invoice_number": f"INV-TEST-{counter['n']:03d}",
            "vendor_name": "Acme Office Supplies",
            "amount_cents": 100000,
            "due_date": date.today() + timedelta(days=30),
            "payment_terms": "Net 30",
        }
        fields.update(overrides)
        return InvoicePaymentOrchestrator(db).create_invoice(fields)

    return _make
