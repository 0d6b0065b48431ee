"""/v1/invoices - invoice CRUD and payment orchestration"""

from typing import List
from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.orm import Session

from expense_gateway.api.dependencies import get_request_id
from expense_gateway.api.v1.schemas import (
    AuthorizationResponse,
    CardResponse,
    InvoiceCreate,
    InvoicePaymentResponse,
    InvoiceResponse,
    InvoiceUpdate,
    PaymentResponse,
    PayInvoiceRequest,
    TransactionResponse,
)
from expense_gateway.domain.exceptions import ValidationError
from expense_gateway.infrastructure.database.session import get_db
from expense_gateway.services.invoices import InvoicePaymentOrchestrator

router = APIRouter()

TEMPLATE_FIELDS = ("gl_account_template", "department_template", "cost_center_template")


@router.get("/invoices", response_model=List[InvoiceResponse])
def list_invoices(db: Session = Depends(get_db)):
    return [InvoiceResponse.model_validate(i) for i in InvoicePaymentOrchestrator(db).list_invoices()]


@router.post("/invoices", response_model=InvoiceResponse, status_code=status.HTTP_201_CREATED)
def create_invoice(request_body: InvoiceCreate, db: Session = Depends(get_db)):
    invoice = InvoicePaymentOrchestrator(db).create_invoice(request_body.model_dump(exclude_none=True))
    return InvoiceResponse.model_validate(invoice)


@router.get("/invoices/{invoice_id}", response_model=InvoiceResponse)
def get_invoice(invoice_id: str, db: Session = Depends(get_db)):
    return InvoiceResponse.model_validate(InvoicePaymentOrchestrator(db).get_invoice(invoice_id))


@router.patch("/invoices/{invoice_id}", response_model=InvoiceResponse)
def update_invoice(invoice_id: str, request_body: InvoiceUpdate, db: Session = Depends(get_db)):
    """Partial update; an invoice locked to a live card accepts status changes only"""
    invoice = InvoicePaymentOrchestrator(db).update_invoice(invoice_id, request_body.model_dump(exclude_unset=True))
    return InvoiceResponse.model_validate(invoice)


@router.delete("/invoices/{invoice_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_invoice(invoice_id: str, db: Session = Depends(get_db)):
    InvoicePaymentOrchestrator(db).delete_invoice(invoice_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/invoices/{invoice_id}/update-status", response_model=InvoiceResponse)
def update_invoice_status(invoice_id: str, db: Session = Depends(get_db)):
    """Re-derive invoice status from its payments"""
    return InvoiceResponse.model_validate(InvoicePaymentOrchestrator(db).recompute_invoice_status(invoice_id))


@router.post("/invoices/{invoice_id}/schedule-payments", response_model=List[PaymentResponse],
             status_code=status.HTTP_201_CREATED)
def schedule_payments(invoice_id: str, db: Session = Depends(get_db)):
    payments = InvoicePaymentOrchestrator(db).schedule_installments(invoice_id)
    return [PaymentResponse.model_validate(p) for p in payments]


@router.post("/invoices/{invoice_id}/pay", response_model=InvoicePaymentResponse)
def pay_invoice(invoice_id: str, request_body: PayInvoiceRequest, request: Request,
                db: Session = Depends(get_db)):
    """
    Pay an invoice.

    Methods:
    - card: issue or reuse the bound card and charge the outstanding amount now
    - shared_card: issue or reuse the bound card for the vendor to charge
    - ach / check: record a paid payment, debiting the wallet unless source=external

    A declined card charge is a 200 with `authorization.approved=false`; the
    card stays linked to the invoice for a retry.
    """
    request_id = get_request_id(request)
    orchestrator = InvoicePaymentOrchestrator(db)

    if request_body.method in ("card", "shared_card"):
        if not request_body.cardholder_name:
            raise ValidationError("cardholder_name is required for card payments")
        overrides = {
            name: getattr(request_body, name)
            for name in TEMPLATE_FIELDS
            if getattr(request_body, name) is not None
        }

        if request_body.method == "card":
            card, invoice, result = orchestrator.pay_via_immediate_charge(
                invoice_id, request_body.cardholder_name, card_overrides=overrides, request_id=request_id
            )
            return InvoicePaymentResponse(
                invoice=InvoiceResponse.model_validate(invoice),
                card=CardResponse.model_validate(card),
                authorization=AuthorizationResponse.from_result(result),
            )

        card, invoice = orchestrator.pay_via_shared_card(
            invoice_id,
            request_body.cardholder_name,
            request_body.vendor_email,
            card_overrides=overrides,
            request_id=request_id,
        )
        return InvoicePaymentResponse(
            invoice=InvoiceResponse.model_validate(invoice),
            card=CardResponse.model_validate(card),
        )

    invoice, payment, txn = orchestrator.pay_via_ach_or_check(
        invoice_id,
        request_body.method,
        amount_cents=request_body.amount_cents,
        source=request_body.source,
        request_id=request_id,
    )
    return InvoicePaymentResponse(
        invoice=InvoiceResponse.model_validate(invoice),
        payment=PaymentResponse.model_validate(payment),
        transaction=TransactionResponse.model_validate(txn),
    )
