"""Integration tests for invoice payment orchestration"""

import pytest
from datetime import date, timedelta
from unittest.mock import patch
from expense_gateway.domain.exceptions import ConflictError, InsufficientFundsError, ValidationError
from expense_gateway.infrastructure.database.models import Card, CompanyWallet, Invoice, Payment, Transaction
from expense_gateway.infrastructure.database.repositories import InvoiceRepository
from expense_gateway.services.authorizer import TransactionAuthorizer
from expense_gateway.services.cards import CardLifecycleManager
from expense_gateway.services.invoices import InvoicePaymentOrchestrator


def balance(db) -> int:
    db.expire_all()
    return db.query(CompanyWallet).one().balance_cents


def test_immediate_charge_pays_invoice(db, fund_wallet, make_invoice):
    fund_wallet(200000)
    invoice = make_invoice(amount_cents=100000)

    card, invoice, result = InvoicePaymentOrchestrator(db).pay_via_immediate_charge(invoice.id, "Sarah Johnson")

    assert result.approved is True
    assert invoice.status == "Paid"
    assert invoice.locked_card_id == card.id
    assert invoice.first_payment_method == "card"
    assert invoice.payment_method == f"Virtual Card - {card.last4}"
    assert card.invoice_id == invoice.id
    assert card.spend_limit_cents == 100000
    assert card.transaction_count == "1"
    assert card.status == "Active"

    payments = db.query(Payment).filter(Payment.invoice_id == invoice.id).all()
    assert [(p.amount_cents, p.status, p.payment_method) for p in payments] == [(100000, "Paid", "card")]
    assert result.transaction.invoice_id == invoice.id
    assert balance(db) == 100000


def test_declined_charge_keeps_card_linked_for_retry(db, fund_wallet, make_invoice):
    invoice = make_invoice(amount_cents=100000)
    orchestrator = InvoicePaymentOrchestrator(db)

    card, invoice, result = orchestrator.pay_via_immediate_charge(invoice.id, "Sarah Johnson")

    assert result.approved is False
    assert result.decline_code == "insufficient_funds"
    assert invoice.locked_card_id == card.id
    assert invoice.status == "Pending"
    assert invoice.first_payment_method is None
    assert db.query(Payment).count() == 0

    fund_wallet(100000)
    retry_card, invoice, retry = orchestrator.pay_via_immediate_charge(invoice.id, "Sarah Johnson")

    assert retry.approved is True
    assert retry_card.id == card.id
    assert invoice.status == "Paid"


def test_exhausted_invoice_card_declines_further_charges(db, fund_wallet, make_invoice):
    fund_wallet(200000)
    invoice = make_invoice(amount_cents=50000)
    card, _, _ = InvoicePaymentOrchestrator(db).pay_via_immediate_charge(invoice.id, "Sarah Johnson")

    result = TransactionAuthorizer(db).authorize(card.id, 100)

    assert result.approved is False
    assert result.decline_code == "card_exhausted"
    assert result.decline_reason == "Spend limit exhausted"


def test_card_templates_flow_to_payment(db, fund_wallet, make_invoice):
    fund_wallet(100000)
    invoice = make_invoice(amount_cents=10000)

    _, invoice, result = InvoicePaymentOrchestrator(db).pay_via_immediate_charge(
        invoice.id,
        "Sarah Johnson",
        card_overrides={"gl_account_template": "5000", "department_template": "Operations",
                        "cost_center_template": "CC-003"},
    )

    payment = db.query(Payment).filter(Payment.invoice_id == invoice.id).one()
    assert (payment.gl_account, payment.department, payment.cost_center) == ("5000", "Operations", "CC-003")
    assert result.transaction.gl_account == "5000"


def test_shared_card_awaits_vendor(db, fund_wallet, make_invoice):
    fund_wallet(50000)
    invoice = make_invoice(amount_cents=30000, payment_terms="Monthly Recurring")

    card, invoice = InvoicePaymentOrchestrator(db).pay_via_shared_card(
        invoice.id, "Sarah Johnson", "billing@cloudhost.example"
    )

    assert invoice.status == "Card Shared - Awaiting Payment"
    assert invoice.vendor_email == "billing@cloudhost.example"
    assert invoice.first_payment_method == "card"
    assert invoice.locked_card_id == card.id
    assert card.limit_type == "recurring"
    assert card.renewal_frequency == "month"
    assert card.current_spend_cents == 0
    assert balance(db) == 50000


def test_shared_card_requires_vendor_email(db, make_invoice):
    invoice = make_invoice()
    with pytest.raises(ValidationError):
        InvoicePaymentOrchestrator(db).pay_via_shared_card(invoice.id, "Sarah Johnson", "not-an-email")


def test_shared_twice_reuses_card(db, make_invoice):
    invoice = make_invoice()
    orchestrator = InvoicePaymentOrchestrator(db)

    first, _ = orchestrator.pay_via_shared_card(invoice.id, "Sarah Johnson", "ap@acme.example")
    second, _ = orchestrator.pay_via_shared_card(invoice.id, "Sarah Johnson", "ap@acme.example")

    assert first.id == second.id


def test_suspended_card_replaced_on_next_payment(db, make_invoice):
    invoice = make_invoice()
    orchestrator = InvoicePaymentOrchestrator(db)
    first, _ = orchestrator.pay_via_shared_card(invoice.id, "Sarah Johnson", "ap@acme.example")
    CardLifecycleManager(db).suspend_card(first.id)

    second, invoice = orchestrator.pay_via_shared_card(invoice.id, "Sarah Johnson", "ap@acme.example")

    assert second.id != first.id
    assert invoice.locked_card_id == second.id


def test_locked_card_reused_and_declined(db, fund_wallet, make_invoice):
    fund_wallet(200000)
    invoice = make_invoice()
    orchestrator = InvoicePaymentOrchestrator(db)
    shared, _ = orchestrator.pay_via_shared_card(invoice.id, "Sarah Johnson", "ap@acme.example")
    CardLifecycleManager(db).lock_card(shared.id)

    card, invoice, result = orchestrator.pay_via_immediate_charge(invoice.id, "Sarah Johnson")

    assert card.id == shared.id
    assert result.decline_code == "card_locked"
    assert balance(db) == 200000


def test_ach_landing_before_charge_blocks_card_payment(db, fund_wallet, make_invoice):
    """An ACH payment between card binding and the charge must stop the charge"""
    fund_wallet(200000)
    invoice = make_invoice(amount_cents=100000)
    authorize = TransactionAuthorizer.authorize

    def pay_by_ach_first(authorizer, *args, **kwargs):
        InvoicePaymentOrchestrator(db).pay_via_ach_or_check(invoice.id, "ach")
        return authorize(authorizer, *args, **kwargs)

    with patch.object(TransactionAuthorizer, "authorize", autospec=True, side_effect=pay_by_ach_first):
        with pytest.raises(ConflictError) as exc_info:
            InvoicePaymentOrchestrator(db).pay_via_immediate_charge(invoice.id, "Sarah Johnson")

    assert "locked to ach" in exc_info.value.message
    db.expire_all()
    payments = db.query(Payment).filter(Payment.invoice_id == invoice.id).all()
    assert [(p.payment_method, p.amount_cents) for p in payments] == [("ach", 100000)]
    assert db.query(Transaction).filter(Transaction.card_id.isnot(None)).count() == 0
    assert db.get(Invoice, invoice.id).first_payment_method == "ach"
    assert balance(db) == 100000


def test_concurrent_link_reuses_winning_card(db, make_card, make_invoice):
    invoice = make_invoice()
    winner = make_card(cardholder_name="Mike Chen")

    def link_elsewhere(repo, invoice_id, card_id, payment_method, expected_card_id=None):
        repo.db.query(Invoice).filter(Invoice.id == invoice_id).update(
            {Invoice.locked_card_id: winner.id}, synchronize_session=False
        )
        return False

    with patch.object(InvoiceRepository, "link_card", autospec=True, side_effect=link_elsewhere):
        card, invoice = InvoicePaymentOrchestrator(db).pay_via_shared_card(
            invoice.id, "Sarah Johnson", "ap@acme.example"
        )

    assert card.id == winner.id
    assert invoice.locked_card_id == winner.id
    assert db.query(Card).count() == 2


def test_method_locked_after_first_payment(db, fund_wallet, make_invoice):
    fund_wallet(200000)
    invoice = make_invoice(amount_cents=100000)
    orchestrator = InvoicePaymentOrchestrator(db)
    orchestrator.pay_via_ach_or_check(invoice.id, "ach", amount_cents=40000)

    with pytest.raises(ConflictError) as exc_info:
        orchestrator.pay_via_immediate_charge(invoice.id, "Sarah Johnson")
    assert "locked to ach" in exc_info.value.message

    with pytest.raises(ConflictError):
        orchestrator.pay_via_ach_or_check(invoice.id, "check")


def test_method_lock_reported_before_paid(db, fund_wallet, make_invoice):
    fund_wallet(200000)
    invoice = make_invoice(amount_cents=100000)
    orchestrator = InvoicePaymentOrchestrator(db)
    orchestrator.pay_via_ach_or_check(invoice.id, "check")

    with pytest.raises(ConflictError) as exc_info:
        orchestrator.pay_via_shared_card(invoice.id, "Sarah Johnson", "ap@acme.example")
    assert "locked to check" in exc_info.value.message

    with pytest.raises(ConflictError) as exc_info:
        orchestrator.pay_via_ach_or_check(invoice.id, "check")
    assert "already paid" in exc_info.value.message


def test_ach_partial_then_rest(db, fund_wallet, make_invoice):
    fund_wallet(200000)
    invoice = make_invoice(amount_cents=100000)
    orchestrator = InvoicePaymentOrchestrator(db)

    invoice, payment, txn = orchestrator.pay_via_ach_or_check(invoice.id, "ach", amount_cents=40000)

    assert invoice.status == "Partially Paid"
    assert invoice.payment_method == "ACH"
    assert payment.status == "Paid"
    assert txn.card_id is None
    assert txn.status == "Approved"
    assert txn.payment_method == "ach"

    invoice, payment, _ = orchestrator.pay_via_ach_or_check(invoice.id, "ach")

    assert payment.amount_cents == 60000
    assert invoice.status == "Paid"
    assert balance(db) == 100000


def test_ach_insufficient_wallet_writes_nothing(db, fund_wallet, make_invoice):
    fund_wallet(5000)
    invoice = make_invoice(amount_cents=100000)

    with pytest.raises(InsufficientFundsError):
        InvoicePaymentOrchestrator(db).pay_via_ach_or_check(invoice.id, "ach")

    assert balance(db) == 5000
    assert db.query(Payment).count() == 0
    assert db.query(Transaction).count() == 0
    db.refresh(invoice)
    assert invoice.first_payment_method is None


def test_check_from_external_funds_leaves_wallet(db, fund_wallet, make_invoice):
    fund_wallet(1000)
    invoice = make_invoice(amount_cents=100000)

    invoice, _, _ = InvoicePaymentOrchestrator(db).pay_via_ach_or_check(invoice.id, "check", source="external")

    assert invoice.status == "Paid"
    assert invoice.payment_method == "Check"
    assert balance(db) == 1000


def test_ach_over_outstanding_rejected(db, fund_wallet, make_invoice):
    fund_wallet(500000)
    invoice = make_invoice(amount_cents=100000)
    with pytest.raises(ValidationError):
        InvoicePaymentOrchestrator(db).pay_via_ach_or_check(invoice.id, "ach", amount_cents=100001)


def test_locked_invoice_update_reports_blocked_fields(db, make_invoice):
    invoice = make_invoice()
    orchestrator = InvoicePaymentOrchestrator(db)
    orchestrator.pay_via_shared_card(invoice.id, "Sarah Johnson", "ap@acme.example")

    with pytest.raises(ConflictError) as exc_info:
        orchestrator.update_invoice(invoice.id, {"amount_cents": 5, "vendor_name": "Other", "status": "Approved"})

    assert exc_info.value.blocked_fields == ["amount_cents", "vendor_name"]
    assert orchestrator.get_invoice(invoice.id).amount_cents == 100000

    assert orchestrator.update_invoice(invoice.id, {"status": "Approved"}).status == "Approved"


def test_unlocked_invoice_update(db, make_invoice):
    invoice = make_invoice()
    updated = InvoicePaymentOrchestrator(db).update_invoice(invoice.id, {"description": "Q2 furniture"})
    assert updated.description == "Q2 furniture"


def test_payment_locks_not_patchable(db, make_invoice):
    invoice = make_invoice()
    orchestrator = InvoicePaymentOrchestrator(db)

    with pytest.raises(ConflictError) as exc_info:
        orchestrator.update_invoice(invoice.id, {"first_payment_method": "ach", "locked_card_id": "card-1"})

    assert exc_info.value.blocked_fields == ["first_payment_method", "locked_card_id"]
    assert orchestrator.get_invoice(invoice.id).first_payment_method is None


def test_delete_blocked_while_card_live(db, make_invoice):
    invoice = make_invoice()
    orchestrator = InvoicePaymentOrchestrator(db)
    card, _ = orchestrator.pay_via_shared_card(invoice.id, "Sarah Johnson", "ap@acme.example")

    with pytest.raises(ConflictError):
        orchestrator.delete_invoice(invoice.id)

    CardLifecycleManager(db).suspend_card(card.id)
    orchestrator.delete_invoice(invoice.id)
    assert orchestrator.list_invoices() == []


def test_schedule_installments(db, make_invoice):
    invoice = make_invoice(amount_cents=90001, payment_terms="3 Installments")
    orchestrator = InvoicePaymentOrchestrator(db)

    payments = orchestrator.schedule_installments(invoice.id)

    assert sorted(p.amount_cents for p in payments) == [30000, 30000, 30001]
    assert all(p.status == "Scheduled" for p in payments)
    assert orchestrator.get_invoice(invoice.id).status == "Scheduled"

    with pytest.raises(ConflictError):
        orchestrator.schedule_installments(invoice.id)


def test_manual_payments_drive_status(db, make_invoice):
    invoice = make_invoice(amount_cents=100000)
    orchestrator = InvoicePaymentOrchestrator(db)

    first = orchestrator.create_payment({
        "invoice_id": invoice.id, "amount_cents": 50000, "payment_method": "ach", "status": "Paid",
    })
    assert first.paid_date is not None
    assert orchestrator.get_invoice(invoice.id).status == "Partially Paid"

    second = orchestrator.create_payment({
        "invoice_id": invoice.id, "amount_cents": 50000, "payment_method": "ach",
        "due_date": date.today() - timedelta(days=1),
    })
    assert orchestrator.get_invoice(invoice.id).status == "Overdue"

    orchestrator.update_payment(second.id, {"status": "Paid"})
    assert orchestrator.get_invoice(invoice.id).status == "Paid"


def test_simulated_invoice_number(db):
    invoice = InvoicePaymentOrchestrator(db).simulate_invoice("Acme", 12345, date.today())
    assert invoice.invoice_number.startswith("INV-")
    assert invoice.status == "Pending"
