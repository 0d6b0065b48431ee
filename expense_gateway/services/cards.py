"""Card lifecycle manager - issuance, approval decisions and status changes"""

import logging
from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy.orm import Session

from expense_gateway.config import settings
from expense_gateway.domain.cards import evaluate_auto_suspend, generate_card_details, validate_transition
from expense_gateway.domain.exceptions import ConflictError, NotFoundError, ValidationError
from expense_gateway.domain.models import ApprovalStatus, AutoSuspendVerdict, CardStatus, LimitType
from expense_gateway.infrastructure.database.models import Card, CardApproval
from expense_gateway.infrastructure.database.repositories import (
    ApprovalRepository,
    CardRepository,
    InvoiceRepository,
    TransactionRepository,
)
from expense_gateway.infrastructure.database.session import unit_of_work
from expense_gateway.infrastructure.observability.metrics import record_card_transition
from expense_gateway.utils.date_utils import utcnow

logger = logging.getLogger(__name__)

AUTO_APPROVED = "Auto-Approved"


class CardLifecycleManager:
    """Owns every card status change and the rules around it"""

    def __init__(self, db: Session):
        self.db = db
        self.cards = CardRepository(db)
        self.approvals = ApprovalRepository(db)
        self.invoices = InvoiceRepository(db)
        self.transactions = TransactionRepository(db)

    # Reads

    def get_card(self, card_id: str) -> Card:
        card = self.cards.get(card_id)
        if card is None:
            raise NotFoundError("Card", card_id)
        return card

    def list_cards(self) -> List[Card]:
        return self.cards.list()

    def auto_suspend_status(self, card_id: str) -> AutoSuspendVerdict:
        card = self.get_card(card_id)
        return evaluate_auto_suspend(card, self.transactions.list_by_card(card_id))

    # Issuance

    def request_card(self, spec: Dict[str, Any], approver_name: Optional[str] = None,
                     approver_role: Optional[str] = None) -> Tuple[Card, CardApproval]:
        """Create a card awaiting approval together with its level-1 approval record"""
        fields = self._prepare_spec(spec)
        with unit_of_work(self.db):
            card = self.cards.create(status=CardStatus.PENDING_APPROVAL, current_spend_cents=0, **fields)
            approval = self.approvals.create(
                card.id, approval_level=1, approver_name=approver_name, approver_role=approver_role
            )
        logger.info("Card requested", extra={"card_id": card.id, "approval_id": approval.id})
        return card, approval

    def create_active_card(self, spec: Dict[str, Any], approved_by: str = AUTO_APPROVED) -> Card:
        with unit_of_work(self.db):
            card = self.issue_active_card(spec, approved_by=approved_by)
        return card

    def issue_active_card(self, spec: Dict[str, Any], approved_by: str = AUTO_APPROVED) -> Card:
        """Pre-activated card for auto-approved paths; caller owns the transaction"""
        fields = self._prepare_spec(spec)
        details = generate_card_details(utcnow(), settings.card_bin, settings.card_validity_years)
        card = self.cards.create(
            status=CardStatus.ACTIVE,
            current_spend_cents=0,
            approved_by=approved_by,
            card_number=details.card_number,
            last4=details.last4,
            expiry_date=details.expiry_date,
            cvv=details.cvv,
            **fields,
        )
        logger.info("Card issued active", extra={"card_id": card.id, "invoice_id": card.invoice_id})
        return card

    def _prepare_spec(self, spec: Dict[str, Any]) -> Dict[str, Any]:
        fields = dict(spec)
        if not fields.get("cardholder_name"):
            raise ValidationError("cardholder_name is required")
        if fields.get("spend_limit_cents") is None or fields["spend_limit_cents"] <= 0:
            raise ValidationError("spend_limit_cents must be positive")
        fields.setdefault("requested_by", fields["cardholder_name"])
        fields.setdefault("limit_type", LimitType.ONE_TIME)

        if fields["limit_type"] == LimitType.RECURRING:
            if not fields.get("renewal_frequency"):
                raise ValidationError("renewal_frequency is required for recurring cards")
            fields.setdefault("last_reset_at", utcnow())
        fields.setdefault(
            "is_one_time_use",
            fields["limit_type"] == LimitType.ONE_TIME and fields.get("transaction_count") == "1",
        )
        return fields

    # Approval decisions

    def decide_approval(self, approval_id: str, decision: str, approver_name: str,
                        comments: Optional[str] = None) -> Tuple[CardApproval, Card]:
        """
        Record an approver's decision and move the card accordingly.

        Approved activates the card once no other level is still pending.
        Rejected at any level rejects the card.
        """
        if decision not in (ApprovalStatus.APPROVED, ApprovalStatus.REJECTED):
            raise ValidationError(f"Decision must be Approved or Rejected, got {decision}")

        with unit_of_work(self.db):
            approval = self.approvals.get_for_update(approval_id)
            if approval is None:
                raise NotFoundError("Card approval", approval_id)
            card = self.cards.get_for_update(approval.card_id)
            if card is None:
                raise NotFoundError("Card", approval.card_id)
            if approval.status != ApprovalStatus.PENDING:
                raise ConflictError(f"Approval {approval_id} is already {approval.status}")

            approval.status = decision
            approval.approver_name = approver_name
            approval.approved_at = utcnow()
            if comments is not None:
                approval.comments = comments
            self.db.flush()

            if card.status == CardStatus.PENDING_APPROVAL:
                if decision == ApprovalStatus.REJECTED:
                    self.apply_transition(card, CardStatus.REJECTED)
                elif not self.approvals.pending_for_card(card.id):
                    self.apply_transition(card, CardStatus.ACTIVE)
                    card.approved_by = approver_name

        logger.info(
            "Card approval decided",
            extra={"approval_id": approval.id, "card_id": card.id, "decision": decision},
        )
        return approval, card

    # Status changes

    def lock_card(self, card_id: str) -> Card:
        return self._change_status(card_id, CardStatus.LOCKED)

    def unlock_card(self, card_id: str) -> Card:
        return self._change_status(card_id, CardStatus.ACTIVE)

    def suspend_card(self, card_id: str) -> Card:
        return self._change_status(card_id, CardStatus.SUSPENDED)

    def _change_status(self, card_id: str, to_status: str) -> Card:
        with unit_of_work(self.db):
            card = self._locked_card(card_id)
            self.apply_transition(card, to_status)
        return card

    def update_card(self, card_id: str, changes: Dict[str, Any]) -> Card:
        """
        Generic card update.

        A card bound to an invoice accepts only status changes until it is
        suspended; offending fields are rejected together and nothing is applied.
        """
        changes = dict(changes)
        to_status = changes.pop("status", None)

        with unit_of_work(self.db):
            card = self._locked_card(card_id)

            if card.invoice_id and card.status != CardStatus.SUSPENDED and changes:
                blocked = sorted(changes)
                raise ConflictError(
                    f"Card is bound to invoice {card.invoice_id}; only status can be changed",
                    blocked_fields=blocked,
                )
            if "spend_limit_cents" in changes and (changes["spend_limit_cents"] or 0) <= 0:
                raise ValidationError("spend_limit_cents must be positive")

            for name, value in changes.items():
                setattr(card, name, value)
            if to_status is not None and to_status != card.status:
                self.apply_transition(card, to_status)
            self.db.flush()
        return card

    def delete_card(self, card_id: str) -> None:
        with unit_of_work(self.db):
            card = self._locked_card(card_id)
            locked = self.invoices.locked_to_card(card.id)
            if locked:
                raise ConflictError(f"Card is locked to invoice {locked[0].invoice_number} and cannot be deleted")
            self.cards.delete(card)
        logger.info("Card deleted", extra={"card_id": card_id})

    def _locked_card(self, card_id: str) -> Card:
        card = self.cards.get_for_update(card_id)
        if card is None:
            raise NotFoundError("Card", card_id)
        return card

    def apply_transition(self, card: Card, to_status: str) -> None:
        """Apply a validated transition and its side effects; caller owns the transaction"""
        from_status = card.status
        validate_transition(from_status, to_status)

        if to_status == CardStatus.SUSPENDED:
            self._guard_suspend(card)

        if to_status == CardStatus.ACTIVE and card.card_number is None:
            details = generate_card_details(utcnow(), settings.card_bin, settings.card_validity_years)
            card.card_number = details.card_number
            card.last4 = details.last4
            card.expiry_date = details.expiry_date
            card.cvv = details.cvv

        card.status = to_status
        self.db.flush()
        record_card_transition(from_status, to_status)
        logger.info(
            "Card status changed",
            extra={"card_id": card.id, "from_status": from_status, "to_status": to_status},
        )

    def _guard_suspend(self, card: Card) -> None:
        """A card that already paid into an invoice keeps the invoice's audit trail alive"""
        if card.current_spend_cents <= 0:
            return
        locked = self.invoices.locked_to_card(card.id)
        if locked:
            raise ConflictError(
                f"Card is locked to invoice {locked[0].invoice_number} with non-zero spend"
            )
