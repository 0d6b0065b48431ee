"""/v1/payments - AP payment records; every write re-derives the invoice status"""

from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from expense_gateway.api.v1.schemas import PaymentCreate, PaymentResponse, PaymentUpdate
from expense_gateway.infrastructure.database.session import get_db
from expense_gateway.services.invoices import InvoicePaymentOrchestrator

router = APIRouter()


@router.get("/payments", response_model=List[PaymentResponse])
def list_payments(
    invoice_id: Optional[str] = Query(None, description="Only payments for this invoice"),
    db: Session = Depends(get_db),
):
    return [PaymentResponse.model_validate(p) for p in InvoicePaymentOrchestrator(db).list_payments(invoice_id)]


@router.get("/payments/{payment_id}", response_model=PaymentResponse)
def get_payment(payment_id: str, db: Session = Depends(get_db)):
    return PaymentResponse.model_validate(InvoicePaymentOrchestrator(db).get_payment(payment_id))


@router.post("/payments", response_model=PaymentResponse, status_code=status.HTTP_201_CREATED)
def create_payment(request_body: PaymentCreate, db: Session = Depends(get_db)):
    payment = InvoicePaymentOrchestrator(db).create_payment(request_body.model_dump(exclude_none=True))
    return PaymentResponse.model_validate(payment)


@router.patch("/payments/{payment_id}", response_model=PaymentResponse)
def update_payment(payment_id: str, request_body: PaymentUpdate, db: Session = Depends(get_db)):
    payment = InvoicePaymentOrchestrator(db).update_payment(payment_id, request_body.model_dump(exclude_unset=True))
    return PaymentResponse.model_validate(payment)
