"""/v1/cards - card issuance, status changes and per-card views"""

from typing import List
from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from expense_gateway.api.v1.schemas import (
    ApprovalResponse,
    AutoSuspendResponse,
    CardCreate,
    CardRequestResponse,
    CardResponse,
    CardUpdate,
    TransactionResponse,
)
from expense_gateway.domain.models import CardStatus
from expense_gateway.infrastructure.database.session import get_db
from expense_gateway.services.cards import CardLifecycleManager
from expense_gateway.services.transactions import TransactionService

router = APIRouter()


@router.get("/cards", response_model=List[CardResponse])
def list_cards(db: Session = Depends(get_db)):
    return [CardResponse.model_validate(c) for c in CardLifecycleManager(db).list_cards()]


@router.post("/cards", response_model=CardRequestResponse, status_code=status.HTTP_201_CREATED)
def create_card(request_body: CardCreate, db: Session = Depends(get_db)):
    """
    Request a card.

    Cards created as "Pending Approval" get a level-1 approval record; cards
    created as "Active" are auto-approved and get card details immediately.
    """
    manager = CardLifecycleManager(db)
    fields = request_body.model_dump(exclude_none=True, exclude={"status", "approver_name", "approver_role"})

    if request_body.status == CardStatus.ACTIVE:
        card = manager.create_active_card(fields)
        return CardRequestResponse(card=CardResponse.model_validate(card))

    card, approval = manager.request_card(
        fields, approver_name=request_body.approver_name, approver_role=request_body.approver_role
    )
    return CardRequestResponse(
        card=CardResponse.model_validate(card),
        approval=ApprovalResponse.model_validate(approval),
    )


@router.get("/cards/{card_id}", response_model=CardResponse)
def get_card(card_id: str, db: Session = Depends(get_db)):
    return CardResponse.model_validate(CardLifecycleManager(db).get_card(card_id))


@router.patch("/cards/{card_id}", response_model=CardResponse)
def update_card(card_id: str, request_body: CardUpdate, db: Session = Depends(get_db)):
    """Partial update; invoice-bound cards accept status changes only"""
    card = CardLifecycleManager(db).update_card(card_id, request_body.model_dump(exclude_unset=True))
    return CardResponse.model_validate(card)


@router.delete("/cards/{card_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_card(card_id: str, db: Session = Depends(get_db)):
    CardLifecycleManager(db).delete_card(card_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/cards/{card_id}/lock", response_model=CardResponse)
def lock_card(card_id: str, db: Session = Depends(get_db)):
    """Temporarily freeze an Active card"""
    return CardResponse.model_validate(CardLifecycleManager(db).lock_card(card_id))


@router.post("/cards/{card_id}/unlock", response_model=CardResponse)
def unlock_card(card_id: str, db: Session = Depends(get_db)):
    return CardResponse.model_validate(CardLifecycleManager(db).unlock_card(card_id))


@router.post("/cards/{card_id}/suspend", response_model=CardResponse)
def suspend_card(card_id: str, db: Session = Depends(get_db)):
    """Permanently retire a card; refused while it has paid into a locked invoice"""
    return CardResponse.model_validate(CardLifecycleManager(db).suspend_card(card_id))


@router.get("/cards/{card_id}/auto-suspend", response_model=AutoSuspendResponse)
def auto_suspend_status(card_id: str, db: Session = Depends(get_db)):
    verdict = CardLifecycleManager(db).auto_suspend_status(card_id)
    return AutoSuspendResponse(card_id=card_id, should_suspend=verdict.should_suspend, reason=verdict.reason)


@router.get("/cards/{card_id}/transactions", response_model=List[TransactionResponse])
def card_transactions(card_id: str, db: Session = Depends(get_db)):
    CardLifecycleManager(db).get_card(card_id)
    return [TransactionResponse.model_validate(t) for t in TransactionService(db).list_for_card(card_id)]
