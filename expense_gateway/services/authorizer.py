"""Transaction authorizer - approve or decline a simulated charge against a card"""

import logging
import random
import time
from typing import Callable, Optional
from sqlalchemy.orm import Session

from expense_gateway.config import settings
from expense_gateway.domain.cards import evaluate_auto_suspend, evaluate_charge, renewal_due, status_decline
from expense_gateway.domain.exceptions import NotFoundError, ValidationError
from expense_gateway.domain.models import AuthorizationResult, CardStatus, LimitType, PaymentMethod
from expense_gateway.domain.statuses import coding_complete, derive_transaction_status
from expense_gateway.infrastructure.database.models import Card, Transaction
from expense_gateway.infrastructure.database.repositories import (
    CardRepository,
    InvoiceRepository,
    TransactionRepository,
    WalletRepository,
)
from expense_gateway.infrastructure.database.session import unit_of_work
from expense_gateway.infrastructure.observability.logging import log_authorization
from expense_gateway.infrastructure.observability.metrics import record_authorization, record_wallet_balance
from expense_gateway.services.cards import CardLifecycleManager
from expense_gateway.utils.date_utils import utcnow

logger = logging.getLogger(__name__)

OnApproved = Callable[[Card, Transaction], None]
BeforeCharge = Callable[[], None]


class TransactionAuthorizer:
    """Decides charges and applies wallet debit, spend increment and posting as one unit"""

    def __init__(self, db: Session):
        self.db = db
        self.cards = CardRepository(db)
        self.wallets = WalletRepository(db)
        self.transactions = TransactionRepository(db)
        self.invoices = InvoiceRepository(db)

    def authorize(
        self,
        card_id: str,
        amount_cents: int,
        merchant: Optional[str] = None,
        request_id: Optional[str] = None,
        on_approved: Optional[OnApproved] = None,
        before_charge: Optional[BeforeCharge] = None,
    ) -> AuthorizationResult:
        """
        Authorize a charge.

        Flow:
        1. Validate amount and load the card (NotFoundError if absent)
        2. Locked/Suspended/inactive cards decline without touching anything
        3. Run `before_charge`, which takes any locks that must precede the
           card (an invoice row) and may raise to abort with nothing written
        4. Under row locks on card then wallet: renewal reset, exhaustion,
           wallet funds and spend limit checks
        5. Approved: debit wallet, bump card spend, post the transaction,
           run `on_approved` and auto-suspend, all in the same transaction

        Declines are returned, never raised, and leave no partial state.
        """
        start_time = time.time()
        if amount_cents is None or amount_cents <= 0:
            raise ValidationError("amount_cents must be positive")

        card = self.cards.get(card_id)
        if card is None:
            raise NotFoundError("Card", card_id)

        merchant = merchant or f"Test Merchant {random.randint(0, 999)}"

        decline = status_decline(card.status)
        if decline:
            result = AuthorizationResult.declined(*decline)
        else:
            with unit_of_work(self.db):
                if before_charge is not None:
                    before_charge()
                result = self._authorize_locked(card_id, amount_cents, merchant, on_approved)

        duration_ms = (time.time() - start_time) * 1000
        record_authorization(result.approved, result.decline_code)
        if result.new_wallet_balance_cents is not None:
            record_wallet_balance(result.new_wallet_balance_cents)
        log_authorization(request_id, card_id, amount_cents, result.approved, result.decline_code, duration_ms)
        return result

    def _authorize_locked(self, card_id: str, amount_cents: int, merchant: str,
                          on_approved: Optional[OnApproved]) -> AuthorizationResult:
        # Lock order: card, then wallet
        card = self.cards.get_for_update(card_id)
        if card is None:
            raise NotFoundError("Card", card_id)

        # Status may have changed between the unlocked read and the lock
        decline = status_decline(card.status)
        if decline:
            return AuthorizationResult.declined(*decline)

        wallet = self.wallets.get_for_update()
        now = utcnow()

        base_spend = card.current_spend_cents
        monthly_reset = renewal_due(card, now)
        if monthly_reset:
            base_spend = 0

        history = self.transactions.list_by_card(card.id)
        if settings.enforce_auto_suspend:
            verdict = evaluate_auto_suspend(card, history)
            if verdict.should_suspend:
                return AuthorizationResult.declined(verdict.reason, "card_exhausted")

        decline = evaluate_charge(base_spend, card.spend_limit_cents, amount_cents, wallet.balance_cents)
        if decline:
            return AuthorizationResult.declined(*decline)

        wallet.balance_cents -= amount_cents
        card.current_spend_cents = base_spend + amount_cents
        if monthly_reset or (card.limit_type == LimitType.RECURRING and card.last_reset_at is None):
            card.last_reset_at = now

        txn = self.transactions.create(
            card_id=card.id,
            invoice_id=card.invoice_id,
            amount_cents=amount_cents,
            vendor_name=merchant,
            transaction_date=now,
            gl_account=card.gl_account_template,
            department=card.department_template,
            cost_center=card.cost_center_template,
            payment_method=PaymentMethod.CARD,
            status=derive_transaction_status(
                has_receipt=False,
                has_coding=coding_complete(
                    card.gl_account_template, card.department_template, card.cost_center_template
                ),
            ),
        )

        if on_approved is not None:
            on_approved(card, txn)

        auto_suspended = False
        if settings.enforce_auto_suspend:
            auto_suspended = self._auto_suspend(card, history + [txn])

        self.db.flush()
        return AuthorizationResult(
            approved=True,
            transaction=txn,
            new_wallet_balance_cents=wallet.balance_cents,
            new_card_spend_cents=card.current_spend_cents,
            monthly_reset=monthly_reset,
            auto_suspended=auto_suspended,
        )

    def _auto_suspend(self, card: Card, transactions: list) -> bool:
        """
        Suspend a used-up one-time card.

        Cards locked to an invoice stay Active: the suspend guard protects their
        audit trail and the exhausted limit already blocks further spend.
        """
        verdict = evaluate_auto_suspend(card, transactions)
        if not verdict.should_suspend or card.status != CardStatus.ACTIVE:
            return False
        if self.invoices.locked_to_card(card.id):
            return False

        CardLifecycleManager(self.db).apply_transition(card, CardStatus.SUSPENDED)
        logger.info("Card auto-suspended", extra={"card_id": card.id, "reason": verdict.reason})
        return True
