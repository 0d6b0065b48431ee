"""Approval workflow - pending card requests and approver decisions"""

from typing import List, Optional, Tuple
from sqlalchemy.orm import Session

from expense_gateway.domain.exceptions import ConflictError, NotFoundError, ValidationError
from expense_gateway.domain.models import ApprovalStatus, CardStatus
from expense_gateway.infrastructure.database.models import Card, CardApproval
from expense_gateway.infrastructure.database.repositories import ApprovalRepository, CardRepository
from expense_gateway.infrastructure.database.session import unit_of_work
from expense_gateway.services.cards import CardLifecycleManager


class ApprovalWorkflow:
    """Thin layer over the card lifecycle; holds no state of its own"""

    def __init__(self, db: Session):
        self.db = db
        self.approvals = ApprovalRepository(db)
        self.cards = CardRepository(db)
        self.lifecycle = CardLifecycleManager(db)

    def list_all(self, status: Optional[str] = None) -> List[CardApproval]:
        return self.approvals.list(status)

    def list_pending(self) -> List[Tuple[CardApproval, Card]]:
        """Pending approvals joined with the card they decide"""
        return [(approval, approval.card) for approval in self.approvals.list(ApprovalStatus.PENDING)]

    def create(self, card_id: str, approver_name: Optional[str] = None, approver_role: Optional[str] = None,
               approval_level: int = 1, comments: Optional[str] = None) -> CardApproval:
        """Add an approval step to a card that is still awaiting approval"""
        if approval_level < 1:
            raise ValidationError("approval_level must be at least 1")
        with unit_of_work(self.db):
            card = self.cards.get_for_update(card_id)
            if card is None:
                raise NotFoundError("Card", card_id)
            if card.status != CardStatus.PENDING_APPROVAL:
                raise ConflictError(f"Card {card_id} is {card.status}, not awaiting approval")
            approval = self.approvals.create(
                card_id,
                approval_level=approval_level,
                approver_name=approver_name,
                approver_role=approver_role,
                comments=comments,
            )
        return approval

    def approve(self, approval_id: str, approver_name: str, comments: Optional[str] = None) -> Tuple[CardApproval, Card]:
        return self.lifecycle.decide_approval(approval_id, ApprovalStatus.APPROVED, approver_name, comments)

    def reject(self, approval_id: str, approver_name: str, comments: Optional[str] = None) -> Tuple[CardApproval, Card]:
        return self.lifecycle.decide_approval(approval_id, ApprovalStatus.REJECTED, approver_name, comments)
