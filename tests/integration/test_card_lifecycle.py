"""Integration tests for card issuance, approvals and status changes"""

import pytest
from expense_gateway.domain.exceptions import ConflictError, InvalidTransitionError, NotFoundError, ValidationError
from expense_gateway.infrastructure.database.models import Card
from expense_gateway.services.approvals import ApprovalWorkflow
from expense_gateway.services.cards import CardLifecycleManager
from expense_gateway.services.invoices import InvoicePaymentOrchestrator


def request(db, **overrides):
    spec = {"cardholder_name": "David Park", "spend_limit_cents": 250000, "purpose": "Client Entertainment"}
    spec.update(overrides)
    return CardLifecycleManager(db).request_card(spec, approver_name="Finance Director", approver_role="Finance")


def test_request_creates_pending_card_and_approval(db):
    card, approval = request(db)

    assert card.status == "Pending Approval"
    assert card.card_number is None
    assert card.requested_by == "David Park"
    assert approval.status == "Pending"
    assert approval.approval_level == 1
    assert approval.card_id == card.id


def test_approval_activates_and_issues_details(db):
    card, approval = request(db)

    approval, card = ApprovalWorkflow(db).approve(approval.id, "Finance Director", "Looks fine")

    assert approval.status == "Approved"
    assert approval.approved_at is not None
    assert card.status == "Active"
    assert card.approved_by == "Finance Director"
    assert card.card_number.startswith("4571")
    assert len(card.card_number) == 16
    assert card.last4 == card.card_number[-4:]
    assert card.cvv is not None


def test_rejection_rejects_card(db):
    card, approval = request(db)

    _, card = ApprovalWorkflow(db).reject(approval.id, "Finance Director", "Over budget")

    assert card.status == "Rejected"
    assert card.card_number is None


def test_decided_approval_cannot_be_decided_again(db):
    _, approval = request(db)
    workflow = ApprovalWorkflow(db)
    workflow.approve(approval.id, "Finance Director")

    with pytest.raises(ConflictError):
        workflow.reject(approval.id, "VP Finance")


def test_multi_level_approval_waits_for_every_level(db):
    card, level_one = request(db)
    workflow = ApprovalWorkflow(db)
    level_two = workflow.create(card.id, approver_name="CFO", approver_role="Executive", approval_level=2)

    _, card = workflow.approve(level_one.id, "Finance Director")
    assert card.status == "Pending Approval"

    _, card = workflow.approve(level_two.id, "CFO")
    assert card.status == "Active"
    assert card.card_number is not None


def test_rejection_at_any_level_rejects(db):
    card, level_one = request(db)
    workflow = ApprovalWorkflow(db)
    level_two = workflow.create(card.id, approval_level=2)

    workflow.approve(level_one.id, "Finance Director")
    _, card = workflow.reject(level_two.id, "CFO")

    assert card.status == "Rejected"


def test_approval_step_only_for_pending_cards(db, make_card):
    card = make_card()
    with pytest.raises(ConflictError):
        ApprovalWorkflow(db).create(card.id)


def test_list_pending_joins_card(db):
    card, approval = request(db)

    pending = ApprovalWorkflow(db).list_pending()

    assert [(a.id, c.id) for a, c in pending] == [(approval.id, card.id)]


def test_recurring_card_needs_frequency(db):
    with pytest.raises(ValidationError):
        request(db, limit_type="recurring")


def test_lock_unlock_round_trip(db, make_card):
    manager = CardLifecycleManager(db)
    card = make_card()

    assert manager.lock_card(card.id).status == "Locked"
    assert manager.unlock_card(card.id).status == "Active"


def test_suspended_is_terminal(db, make_card):
    manager = CardLifecycleManager(db)
    card = make_card()
    manager.suspend_card(card.id)

    with pytest.raises(InvalidTransitionError):
        manager.unlock_card(card.id)
    assert manager.get_card(card.id).status == "Suspended"


def test_details_never_regenerated_on_unlock(db, make_card):
    manager = CardLifecycleManager(db)
    card = make_card()
    number = card.card_number

    manager.lock_card(card.id)
    card = manager.unlock_card(card.id)

    assert card.card_number == number


def test_suspend_refused_for_card_that_paid_invoice(db, fund_wallet, make_invoice):
    fund_wallet(200000)
    invoice = make_invoice(amount_cents=100000)
    card, _, result = InvoicePaymentOrchestrator(db).pay_via_immediate_charge(invoice.id, "Sarah Johnson")
    assert result.approved is True

    with pytest.raises(ConflictError) as exc_info:
        CardLifecycleManager(db).suspend_card(card.id)

    assert invoice.invoice_number in exc_info.value.message
    assert CardLifecycleManager(db).get_card(card.id).status == "Active"


def test_unused_invoice_card_can_be_suspended(db, make_invoice):
    invoice = make_invoice()
    card, _ = InvoicePaymentOrchestrator(db).pay_via_shared_card(invoice.id, "Sarah Johnson", "ap@acme.example")

    assert CardLifecycleManager(db).suspend_card(card.id).status == "Suspended"


def test_delete_refused_while_locked_to_invoice(db, make_invoice):
    invoice = make_invoice()
    card, _ = InvoicePaymentOrchestrator(db).pay_via_shared_card(invoice.id, "Sarah Johnson", "ap@acme.example")

    with pytest.raises(ConflictError):
        CardLifecycleManager(db).delete_card(card.id)
    assert db.query(Card).filter(Card.id == card.id).count() == 1


def test_delete_free_card(db, make_card):
    card = make_card()
    card_id = card.id
    manager = CardLifecycleManager(db)

    manager.delete_card(card_id)

    with pytest.raises(NotFoundError):
        manager.get_card(card_id)


def test_bound_card_rejects_field_updates(db, make_invoice):
    invoice = make_invoice()
    card, _ = InvoicePaymentOrchestrator(db).pay_via_shared_card(invoice.id, "Sarah Johnson", "ap@acme.example")

    with pytest.raises(ConflictError) as exc_info:
        CardLifecycleManager(db).update_card(card.id, {"spend_limit_cents": 999999, "purpose": "Other"})

    assert exc_info.value.blocked_fields == ["purpose", "spend_limit_cents"]
    assert CardLifecycleManager(db).get_card(card.id).spend_limit_cents == invoice.amount_cents


def test_bound_card_accepts_status_update(db, make_invoice):
    invoice = make_invoice()
    card, _ = InvoicePaymentOrchestrator(db).pay_via_shared_card(invoice.id, "Sarah Johnson", "ap@acme.example")

    card = CardLifecycleManager(db).update_card(card.id, {"status": "Locked"})

    assert card.status == "Locked"


def test_free_card_update(db, make_card):
    card = make_card()

    card = CardLifecycleManager(db).update_card(card.id, {"spend_limit_cents": 75000, "purpose": "Team offsite"})

    assert card.spend_limit_cents == 75000
    assert card.purpose == "Team offsite"


def test_auto_suspend_status_report(db, fund_wallet, make_card):
    fund_wallet(10000)
    card = make_card(spend_limit_cents=5000)
    manager = CardLifecycleManager(db)
    assert manager.auto_suspend_status(card.id).should_suspend is False

    card.current_spend_cents = 5000
    db.commit()

    verdict = manager.auto_suspend_status(card.id)
    assert verdict.should_suspend is True
    assert verdict.reason == "Spend limit exhausted"
