"""/v1/simulate - drive charges and invoices without a card network"""

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from expense_gateway.api.dependencies import get_request_id
from expense_gateway.api.v1.schemas import (
    AuthorizationResponse,
    CardResponse,
    InvoicePaymentResponse,
    InvoiceResponse,
    SimulateInvoiceRequest,
    SimulatePayInvoiceRequest,
    SimulateTransactionRequest,
)
from expense_gateway.infrastructure.database.session import get_db
from expense_gateway.services.authorizer import TransactionAuthorizer
from expense_gateway.services.invoices import InvoicePaymentOrchestrator

router = APIRouter()


@router.post("/simulate/transaction", response_model=AuthorizationResponse)
def simulate_transaction(request_body: SimulateTransactionRequest, request: Request,
                         db: Session = Depends(get_db)):
    """
    Run a charge through the authorizer.

    Declines come back as 200 with `approved=false`, `declined=true` and a
    human-readable `decline_reason`.
    """
    result = TransactionAuthorizer(db).authorize(
        request_body.card_id,
        request_body.amount_cents,
        merchant=request_body.merchant,
        request_id=get_request_id(request),
    )
    return AuthorizationResponse.from_result(result)


@router.post("/simulate/invoice", response_model=InvoiceResponse, status_code=status.HTTP_201_CREATED)
def simulate_invoice(request_body: SimulateInvoiceRequest, db: Session = Depends(get_db)):
    invoice = InvoicePaymentOrchestrator(db).simulate_invoice(
        request_body.vendor_name, request_body.amount_cents, request_body.due_date
    )
    return InvoiceResponse.model_validate(invoice)


@router.post("/simulate/pay-invoice", response_model=InvoicePaymentResponse)
def simulate_pay_invoice(request_body: SimulatePayInvoiceRequest, request: Request,
                         db: Session = Depends(get_db)):
    """Immediate-charge payment of an invoice through a bound card"""
    overrides = {}
    if request_body.spend_limit_cents is not None:
        overrides["spend_limit_cents"] = request_body.spend_limit_cents

    card, invoice, result = InvoicePaymentOrchestrator(db).pay_via_immediate_charge(
        request_body.invoice_id,
        request_body.cardholder_name,
        card_overrides=overrides,
        request_id=get_request_id(request),
    )
    return InvoicePaymentResponse(
        invoice=InvoiceResponse.model_validate(invoice),
        card=CardResponse.model_validate(card),
        authorization=AuthorizationResponse.from_result(result),
    )
