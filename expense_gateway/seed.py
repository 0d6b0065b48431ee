"""Load demo reference data, invoices, cards and wallet funds.

Run with `python -m expense_gateway.seed`. Existing tables are dropped first.
"""

import logging
from datetime import date, timedelta

from expense_gateway.config import settings
from expense_gateway.infrastructure.database.models import Base
from expense_gateway.infrastructure.database.repositories import ReferenceDataRepository
from expense_gateway.infrastructure.database.session import SessionLocal, engine, unit_of_work
from expense_gateway.infrastructure.observability.logging import setup_logging
from expense_gateway.services.authorizer import TransactionAuthorizer
from expense_gateway.services.cards import CardLifecycleManager
from expense_gateway.services.invoices import InvoicePaymentOrchestrator
from expense_gateway.services.wallet import WalletService

logger = logging.getLogger(__name__)

GL_ACCOUNTS = [
    ("5000", "Office Supplies", "Operating Expenses"),
    ("5100", "Office Equipment", "Operating Expenses"),
    ("6100", "Marketing & Advertising", "Marketing"),
    ("6200", "Software & IT", "Technology"),
    ("7000", "Sales & Entertainment", "Sales"),
    ("7200", "Travel & Expenses", "Travel"),
]

DEPARTMENTS = [
    ("DEPT-SALES", "Sales"),
    ("DEPT-TECH", "Technology"),
    ("DEPT-OPS", "Operations"),
    ("DEPT-MKT", "Marketing"),
]

# (code, name, department name)
COST_CENTERS = [
    ("CC-001", "Sales Team", "Sales"),
    ("CC-002", "Engineering", "Technology"),
    ("CC-003", "Operations", "Operations"),
    ("CC-004", "Marketing", "Marketing"),
]

# (number, vendor, amount_cents, days until due, terms, description)
INVOICES = [
    ("INV-2024-001", "Acme Office Supplies", 245000, 20, "Net 30", "Office furniture and equipment for Q1"),
    ("INV-2024-002", "TechCorp Software", 520000, 25, "Net 60", "Annual software licenses renewal"),
    ("INV-2024-003", "CloudHost Services", 185000, 30, "Monthly Recurring", "Cloud infrastructure hosting"),
    ("INV-2024-004", "Design Studio Pro", 350000, -5, "2 Installments", "Brand refresh and website redesign"),
]

WALLET_FUNDING_CENTS = 5_000_000


def seed_reference_data(db) -> None:
    repo = ReferenceDataRepository(db)
    with unit_of_work(db):
        for code, name, category in GL_ACCOUNTS:
            repo.create_gl_account(code, name, category)
        departments = {name: repo.create_department(code, name).id for code, name in DEPARTMENTS}
        for code, name, department in COST_CENTERS:
            repo.create_cost_center(code, name, departments[department])
    logger.info("Reference data seeded")


def seed_invoices(db) -> list:
    orchestrator = InvoicePaymentOrchestrator(db)
    created = [
        orchestrator.create_invoice({
            "invoice_number": number,
            "vendor_name": vendor,
            "amount_cents": amount,
            "due_date": date.today() + timedelta(days=days),
            "payment_terms": terms,
            "description": description,
        })
        for number, vendor, amount, days, terms, description in INVOICES
    ]
    logger.info("Invoices seeded", extra={"count": len(created)})
    return created


def seed_cards(db) -> None:
    manager = CardLifecycleManager(db)
    travel = manager.create_active_card({
        "card_type": "Expense Card",
        "cardholder_name": "Michael Chen",
        "requested_by": "Sarah Johnson",
        "spend_limit_cents": 300000,
        "purpose": "Marketing Conference Travel",
        "allowed_merchants": ["Uber", "Airbnb", "Airlines"],
        "channel_restriction": "both",
        "gl_account_template": "7200",
        "department_template": "Marketing",
        "cost_center_template": "CC-004",
    }, approved_by="VP Finance")
    software = manager.create_active_card({
        "card_type": "Expense Card",
        "cardholder_name": "Priya Patel",
        "spend_limit_cents": 50000,
        "limit_type": "recurring",
        "renewal_frequency": "month",
        "purpose": "SaaS subscriptions",
    }, approved_by="Finance Director")
    manager.request_card({
        "card_type": "Expense Card",
        "cardholder_name": "David Park",
        "requested_by": "Emily Rodriguez",
        "spend_limit_cents": 250000,
        "purpose": "Client Entertainment",
        "gl_account_template": "7000",
        "department_template": "Sales",
        "cost_center_template": "CC-001",
    }, approver_name="Finance Director", approver_role="Finance")

    authorizer = TransactionAuthorizer(db)
    authorizer.authorize(travel.id, 48500, merchant="Airlines")
    authorizer.authorize(travel.id, 12000, merchant="Uber")
    authorizer.authorize(software.id, 9900, merchant="Figma")
    logger.info("Cards seeded")


def seed() -> None:
    setup_logging(settings.log_level)
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        seed_reference_data(db)
        WalletService(db).fund(WALLET_FUNDING_CENTS)
        invoices = seed_invoices(db)
        seed_cards(db)
        InvoicePaymentOrchestrator(db).pay_via_ach_or_check(invoices[0].id, "check", amount_cents=100000)
    finally:
        db.close()
    logger.info("Database seeded", extra={"database_url": settings.database_url})


if __name__ == "__main__":
    seed()
