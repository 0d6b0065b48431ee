"""Derived statuses - computed from facts, never set directly by clients"""

from datetime import date
from typing import Iterable, Optional

from expense_gateway.domain.models import InvoiceStatus, PaymentFact, PaymentStatus, TransactionStatus


def coding_complete(gl_account: Optional[str], department: Optional[str], cost_center: Optional[str]) -> bool:
    """All three accounting dimensions are required before ERP sync"""
    return all(value and value.strip() for value in (gl_account, department, cost_center))


def derive_transaction_status(has_receipt: bool, has_coding: bool, synced: bool = False) -> str:
    """
    Receipt and coding drive the sync pipeline:

    - missing receipt              -> Pending Receipt
    - receipt, incomplete coding   -> Pending Coding
    - receipt and coding           -> Ready to Sync
    - pushed to the ERP            -> Synced
    """
    if synced:
        return TransactionStatus.SYNCED
    if not has_receipt:
        return TransactionStatus.PENDING_RECEIPT
    if not has_coding:
        return TransactionStatus.PENDING_CODING
    return TransactionStatus.READY_TO_SYNC


def transaction_status_for(txn) -> str:
    """Derive status from a transaction-shaped object"""
    return derive_transaction_status(
        has_receipt=bool(txn.receipt_url),
        has_coding=coding_complete(txn.gl_account, txn.department, txn.cost_center),
        synced=txn.synced_at is not None,
    )


def derive_invoice_status(
    amount_cents: int,
    payments: Iterable[PaymentFact],
    today: date,
    current_status: str,
) -> str:
    """
    Invoice status as a function of its payments.

    No payments leaves the current status alone (Pending, Approved, Card Shared).
    """
    payments = list(payments)
    if not payments:
        return current_status

    paid_total = sum(p.amount_cents for p in payments if p.status == PaymentStatus.PAID)
    if paid_total >= amount_cents:
        return InvoiceStatus.PAID

    overdue = any(
        p.status != PaymentStatus.PAID and p.due_date is not None and p.due_date < today
        for p in payments
    )
    if overdue:
        return InvoiceStatus.OVERDUE
    if paid_total > 0:
        return InvoiceStatus.PARTIALLY_PAID
    return InvoiceStatus.SCHEDULED
