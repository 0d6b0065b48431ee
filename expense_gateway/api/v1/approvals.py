"""/v1/card-approvals - approver queue and decisions"""

from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from expense_gateway.api.v1.schemas import (
    ApprovalCreate,
    ApprovalDecision,
    ApprovalDecisionResponse,
    ApprovalResponse,
    CardResponse,
    PendingApprovalResponse,
)
from expense_gateway.domain.models import ApprovalStatus
from expense_gateway.infrastructure.database.session import get_db
from expense_gateway.services.approvals import ApprovalWorkflow

router = APIRouter()


@router.get("/card-approvals", response_model=List[ApprovalResponse])
def list_approvals(
    status_filter: Optional[str] = Query(None, alias="status", description="Pending, Approved or Rejected"),
    db: Session = Depends(get_db),
):
    return [ApprovalResponse.model_validate(a) for a in ApprovalWorkflow(db).list_all(status_filter)]


@router.get("/card-approvals/pending", response_model=List[PendingApprovalResponse])
def list_pending_approvals(db: Session = Depends(get_db)):
    """Pending approvals with the card each one decides"""
    return [
        PendingApprovalResponse(
            approval=ApprovalResponse.model_validate(approval),
            card=CardResponse.model_validate(card),
        )
        for approval, card in ApprovalWorkflow(db).list_pending()
    ]


@router.post("/card-approvals", response_model=ApprovalResponse, status_code=status.HTTP_201_CREATED)
def create_approval(request_body: ApprovalCreate, db: Session = Depends(get_db)):
    approval = ApprovalWorkflow(db).create(
        request_body.card_id,
        approver_name=request_body.approver_name,
        approver_role=request_body.approver_role,
        approval_level=request_body.approval_level,
        comments=request_body.comments,
    )
    return ApprovalResponse.model_validate(approval)


@router.patch("/card-approvals/{approval_id}", response_model=ApprovalDecisionResponse)
def decide_approval(approval_id: str, request_body: ApprovalDecision, db: Session = Depends(get_db)):
    """
    Approve or reject a card request.

    Approving the last pending level activates the card and issues its
    number, expiry and CVV. Rejecting any level rejects the card.
    """
    workflow = ApprovalWorkflow(db)
    if request_body.status == ApprovalStatus.APPROVED:
        approval, card = workflow.approve(approval_id, request_body.approver_name, request_body.comments)
    else:
        approval, card = workflow.reject(approval_id, request_body.approver_name, request_body.comments)
    return ApprovalDecisionResponse(
        approval=ApprovalResponse.model_validate(approval),
        card=CardResponse.model_validate(card),
    )
