"""Invoice payment orchestrator - card binding, payment-method locking and invoice status"""

import logging
import random
from datetime import date
from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy.orm import Session

from expense_gateway.domain.exceptions import ConflictError, InsufficientFundsError, NotFoundError, ValidationError
from expense_gateway.domain.models import (
    AuthorizationResult,
    CardStatus,
    InvoiceStatus,
    PaymentFact,
    PaymentMethod,
    PaymentStatus,
    TransactionStatus,
)
from expense_gateway.domain.payment_terms import (
    card_defaults_for_terms,
    generate_installment_schedule,
    installment_count,
)
from expense_gateway.domain.statuses import derive_invoice_status
from expense_gateway.infrastructure.database.models import Card, Invoice, Payment, Transaction
from expense_gateway.infrastructure.database.repositories import (
    CardRepository,
    InvoiceRepository,
    PaymentRepository,
    TransactionRepository,
    WalletRepository,
)
from expense_gateway.infrastructure.database.session import unit_of_work
from expense_gateway.infrastructure.observability.logging import log_payment
from expense_gateway.infrastructure.observability.metrics import record_invoice_payment, record_wallet_balance
from expense_gateway.services.authorizer import TransactionAuthorizer
from expense_gateway.services.cards import CardLifecycleManager
from expense_gateway.utils.date_utils import utcnow

logger = logging.getLogger(__name__)

SOURCE_WALLET = "wallet"
SOURCE_EXTERNAL = "external"

METHOD_LABELS = {PaymentMethod.ACH: "ACH", PaymentMethod.CHECK: "Check"}

# Written by the payment flows, never by a PATCH
PAYMENT_MANAGED_FIELDS = ("locked_card_id", "first_payment_method")


class InvoicePaymentOrchestrator:
    """Drives an invoice through card, ACH or check payment"""

    def __init__(self, db: Session):
        self.db = db
        self.invoices = InvoiceRepository(db)
        self.cards = CardRepository(db)
        self.payments = PaymentRepository(db)
        self.transactions = TransactionRepository(db)
        self.wallets = WalletRepository(db)
        self.lifecycle = CardLifecycleManager(db)

    # Reads and plain CRUD

    def get_invoice(self, invoice_id: str) -> Invoice:
        invoice = self.invoices.get(invoice_id)
        if invoice is None:
            raise NotFoundError("Invoice", invoice_id)
        return invoice

    def list_invoices(self) -> List[Invoice]:
        return self.invoices.list()

    def create_invoice(self, fields: Dict[str, Any]) -> Invoice:
        if fields.get("amount_cents") is None or fields["amount_cents"] <= 0:
            raise ValidationError("amount_cents must be positive")
        fields = dict(fields)
        fields.setdefault("status", InvoiceStatus.PENDING)
        with unit_of_work(self.db):
            invoice = self.invoices.create(**fields)
        return invoice

    def simulate_invoice(self, vendor_name: str, amount_cents: int, due_date: date) -> Invoice:
        return self.create_invoice({
            "invoice_number": f"INV-{random.randint(0, 99999)}",
            "vendor_name": vendor_name,
            "amount_cents": amount_cents,
            "due_date": due_date,
            "status": InvoiceStatus.PENDING,
            "description": f"Simulated invoice for {vendor_name}",
        })

    def update_invoice(self, invoice_id: str, changes: Dict[str, Any]) -> Invoice:
        """
        Generic invoice update.

        While the invoice is locked to a card that is not Suspended only `status`
        may change; every other field in the payload is reported and nothing applies.
        The card lock and payment-method lock are never patchable.
        """
        with unit_of_work(self.db):
            invoice = self._locked_invoice(invoice_id)
            if self._live_locked_card(invoice) is not None:
                blocked = sorted(name for name in changes if name != "status")
                message = "Invoice is locked to a card; only status can be changed"
            else:
                blocked = sorted(name for name in changes if name in PAYMENT_MANAGED_FIELDS)
                message = "Card and payment-method locks are set by payments only"
            if blocked:
                raise ConflictError(message, blocked_fields=blocked)
            if "amount_cents" in changes and (changes["amount_cents"] or 0) <= 0:
                raise ValidationError("amount_cents must be positive")
            self.invoices.apply(invoice, changes)
        return invoice

    def delete_invoice(self, invoice_id: str) -> None:
        with unit_of_work(self.db):
            invoice = self._locked_invoice(invoice_id)
            if self._live_locked_card(invoice) is not None:
                raise ConflictError("Invoice is locked to a card and cannot be deleted")
            self.invoices.delete(invoice)

    # Invoice status

    def recompute_invoice_status(self, invoice_id: str) -> Invoice:
        with unit_of_work(self.db):
            invoice = self._locked_invoice(invoice_id)
            self._recompute(invoice)
        return invoice

    def _recompute(self, invoice: Invoice) -> None:
        facts = [
            PaymentFact(amount_cents=p.amount_cents, status=p.status, due_date=p.due_date)
            for p in self.payments.list(invoice.id)
        ]
        invoice.status = derive_invoice_status(invoice.amount_cents, facts, date.today(), invoice.status)
        self.db.flush()

    def _paid_total(self, invoice: Invoice) -> int:
        return sum(p.amount_cents for p in self.payments.list(invoice.id) if p.status == PaymentStatus.PAID)

    # Payments

    def list_payments(self, invoice_id: Optional[str] = None) -> List[Payment]:
        return self.payments.list(invoice_id)

    def get_payment(self, payment_id: str) -> Payment:
        payment = self.payments.get(payment_id)
        if payment is None:
            raise NotFoundError("Payment", payment_id)
        return payment

    def create_payment(self, fields: Dict[str, Any]) -> Payment:
        if fields.get("amount_cents") is None or fields["amount_cents"] <= 0:
            raise ValidationError("amount_cents must be positive")
        with unit_of_work(self.db):
            invoice = self._locked_invoice(fields["invoice_id"])
            fields = dict(fields)
            fields.setdefault("status", PaymentStatus.SCHEDULED)
            if fields["status"] == PaymentStatus.PAID and not fields.get("paid_date"):
                fields["paid_date"] = utcnow()
            payment = self.payments.create(**fields)
            self._recompute(invoice)
        return payment

    def update_payment(self, payment_id: str, changes: Dict[str, Any]) -> Payment:
        with unit_of_work(self.db):
            payment = self.payments.get(payment_id)
            if payment is None:
                raise NotFoundError("Payment", payment_id)
            invoice = self._locked_invoice(payment.invoice_id)
            if "amount_cents" in changes and (changes["amount_cents"] or 0) <= 0:
                raise ValidationError("amount_cents must be positive")
            for name, value in changes.items():
                setattr(payment, name, value)
            if payment.status == PaymentStatus.PAID and payment.paid_date is None:
                payment.paid_date = utcnow()
            self.db.flush()
            self._recompute(invoice)
        return payment

    def schedule_installments(self, invoice_id: str) -> List[Payment]:
        """Create one Scheduled payment per installment the invoice's terms call for"""
        with unit_of_work(self.db):
            invoice = self._locked_invoice(invoice_id)
            if self.payments.list(invoice.id):
                raise ConflictError("Invoice already has payments scheduled")
            schedule = generate_installment_schedule(
                invoice.amount_cents, installment_count(invoice.payment_terms), invoice.due_date
            )
            created = [
                self.payments.create(
                    invoice_id=invoice.id,
                    amount_cents=amount,
                    due_date=due_date,
                    payment_method=invoice.first_payment_method or PaymentMethod.CARD,
                    status=PaymentStatus.SCHEDULED,
                )
                for due_date, amount in schedule
            ]
            self._recompute(invoice)
        return created

    # Card payment paths

    def pay_via_immediate_charge(
        self,
        invoice_id: str,
        cardholder_name: str,
        card_overrides: Optional[Dict[str, Any]] = None,
        request_id: Optional[str] = None,
    ) -> Tuple[Card, Invoice, AuthorizationResult]:
        """
        Pay an invoice by charging a bound card now.

        Phase 1 creates or reuses the card and links it, and is committed on its
        own so a declined charge leaves the card in place for a retry once funded.
        Phase 2 re-locks the invoice ahead of the card and wallet, re-checks that it
        is still payable by card with the same outstanding amount, then charges;
        approval records the payment and re-derives invoice status inside the
        charge's transaction.
        """
        with unit_of_work(self.db):
            invoice = self._locked_invoice(invoice_id)
            self._check_payable(invoice, PaymentMethod.CARD)
            card = self._ensure_card(invoice, cardholder_name, card_overrides)
            card_id = card.id
            amount = invoice.amount_cents - self._paid_total(invoice)
            vendor_name = invoice.vendor_name

        def recheck_invoice() -> None:
            # Lock order: invoice, then card and wallet inside the authorizer
            current = self._locked_invoice(invoice_id)
            self._check_payable(current, PaymentMethod.CARD)
            outstanding = current.amount_cents - self._paid_total(current)
            if outstanding != amount:
                raise ConflictError(
                    f"Invoice {current.invoice_number} changed while paying; outstanding is now {outstanding}"
                )

        def record_payment(card: Card, txn: Transaction) -> None:
            current = self.invoices.get(invoice_id)
            self.payments.create(
                invoice_id=current.id,
                amount_cents=txn.amount_cents,
                payment_method=PaymentMethod.CARD,
                status=PaymentStatus.PAID,
                due_date=current.due_date,
                paid_date=txn.transaction_date,
                gl_account=card.gl_account_template,
                department=card.department_template,
                cost_center=card.cost_center_template,
            )
            if not current.first_payment_method:
                current.first_payment_method = PaymentMethod.CARD
            self._recompute(current)

        result = TransactionAuthorizer(self.db).authorize(
            card_id, amount, merchant=vendor_name, request_id=request_id,
            on_approved=record_payment, before_charge=recheck_invoice,
        )

        outcome = "approved" if result.approved else "declined"
        record_invoice_payment(PaymentMethod.CARD, outcome)
        log_payment(request_id, invoice_id, PaymentMethod.CARD, outcome, amount)
        return self.cards.get(card_id), self.get_invoice(invoice_id), result

    def pay_via_shared_card(
        self,
        invoice_id: str,
        cardholder_name: str,
        vendor_email: Optional[str],
        card_overrides: Optional[Dict[str, Any]] = None,
        request_id: Optional[str] = None,
    ) -> Tuple[Card, Invoice]:
        """Issue a bound card for the vendor to charge; nothing is charged here"""
        if not vendor_email or "@" not in vendor_email:
            raise ValidationError("vendor_email is required to share a card")

        with unit_of_work(self.db):
            invoice = self._locked_invoice(invoice_id)
            self._check_payable(invoice, PaymentMethod.CARD)
            card = self._ensure_card(invoice, cardholder_name, card_overrides)
            invoice.vendor_email = vendor_email
            invoice.status = InvoiceStatus.CARD_SHARED
            if not invoice.first_payment_method:
                invoice.first_payment_method = PaymentMethod.CARD
            self.db.flush()

        record_invoice_payment("shared_card", "shared")
        log_payment(request_id, invoice_id, "shared_card", "shared", invoice.amount_cents)
        return card, invoice

    def _ensure_card(self, invoice: Invoice, cardholder_name: str,
                     card_overrides: Optional[Dict[str, Any]]) -> Card:
        """Reuse the invoice's live card or issue and link a new one; caller holds the invoice lock"""
        live = self._live_locked_card(invoice)
        if live is not None:
            return live

        defaults = card_defaults_for_terms(invoice.payment_terms)
        spec = {
            "card_type": "Invoice Payment",
            "cardholder_name": cardholder_name,
            "requested_by": cardholder_name,
            "spend_limit_cents": invoice.amount_cents,
            "purpose": f"Payment for {invoice.invoice_number}",
            "invoice_id": invoice.id,
            "limit_type": defaults.limit_type,
            "transaction_count": defaults.transaction_count,
            "renewal_frequency": defaults.renewal_frequency,
        }
        spec.update(card_overrides or {})
        card = self.lifecycle.issue_active_card(spec)

        linked = self.invoices.link_card(
            invoice.id, card.id, f"Virtual Card - {card.last4}", expected_card_id=invoice.locked_card_id
        )
        if not linked:
            # Another request linked first: pay through its card, keep ours issued
            logger.warning(
                "Invoice already linked by a concurrent request",
                extra={"invoice_id": invoice.id, "card_id": card.id},
            )
            self.db.refresh(invoice)
            winner = self._live_locked_card(invoice)
            if winner is None:
                raise ConflictError(f"Invoice {invoice.invoice_number} was linked to another card; retry the payment")
            return winner
        return card

    # Bank payment paths

    def pay_via_ach_or_check(
        self,
        invoice_id: str,
        method: str,
        amount_cents: Optional[int] = None,
        source: str = SOURCE_WALLET,
        request_id: Optional[str] = None,
    ) -> Tuple[Invoice, Payment, Transaction]:
        """
        Pay an invoice by ACH or check.

        Wallet-sourced payments lock and debit the wallet; insufficient balance
        aborts before any row is written.
        """
        if method not in (PaymentMethod.ACH, PaymentMethod.CHECK):
            raise ValidationError(f"Unsupported bank payment method: {method}")
        if source not in (SOURCE_WALLET, SOURCE_EXTERNAL):
            raise ValidationError(f"Unsupported funding source: {source}")

        new_balance = None
        with unit_of_work(self.db):
            invoice = self._locked_invoice(invoice_id)
            self._check_payable(invoice, method)

            outstanding = invoice.amount_cents - self._paid_total(invoice)
            amount = outstanding if amount_cents is None else amount_cents
            if amount <= 0:
                raise ValidationError("amount_cents must be positive")
            if amount > outstanding:
                raise ValidationError(f"amount_cents exceeds outstanding balance of {outstanding}")

            if source == SOURCE_WALLET:
                wallet = self.wallets.get_for_update()
                if wallet.balance_cents < amount:
                    raise InsufficientFundsError(amount, wallet.balance_cents)
                wallet.balance_cents -= amount
                new_balance = wallet.balance_cents

            now = utcnow()
            payment = self.payments.create(
                invoice_id=invoice.id,
                amount_cents=amount,
                payment_method=method,
                status=PaymentStatus.PAID,
                due_date=invoice.due_date,
                paid_date=now,
            )
            txn = self.transactions.create(
                card_id=None,
                invoice_id=invoice.id,
                amount_cents=amount,
                vendor_name=invoice.vendor_name,
                transaction_date=now,
                status=TransactionStatus.APPROVED,
                payment_method=method,
            )
            invoice.payment_method = METHOD_LABELS[method]
            if not invoice.first_payment_method:
                invoice.first_payment_method = method
            self._recompute(invoice)

        if new_balance is not None:
            record_wallet_balance(new_balance)
        record_invoice_payment(method, "paid")
        log_payment(request_id, invoice_id, method, "paid", amount)
        return invoice, payment, txn

    # Guards

    def _locked_invoice(self, invoice_id: str) -> Invoice:
        invoice = self.invoices.get_for_update(invoice_id)
        if invoice is None:
            raise NotFoundError("Invoice", invoice_id)
        return invoice

    def _live_locked_card(self, invoice: Invoice) -> Optional[Card]:
        """The card the invoice is locked to, unless that card is gone or Suspended"""
        if not invoice.locked_card_id:
            return None
        card = self.cards.get(invoice.locked_card_id)
        if card is None or card.status == CardStatus.SUSPENDED:
            return None
        return card

    def _check_payable(self, invoice: Invoice, method: str) -> None:
        """Reject before any mutation: paid invoices and method switches"""
        if invoice.first_payment_method and invoice.first_payment_method != method:
            raise ConflictError(f"Payment method locked to {invoice.first_payment_method}")
        if invoice.status == InvoiceStatus.PAID:
            raise ConflictError(f"Invoice {invoice.invoice_number} is already paid")
