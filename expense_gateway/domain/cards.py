"""Card lifecycle rules - status transitions, instrument generation, exhaustion checks"""

import secrets
from datetime import datetime
from typing import Dict, FrozenSet, Iterable, Optional

from expense_gateway.domain.exceptions import InvalidTransitionError
from expense_gateway.domain.models import (
    AutoSuspendVerdict,
    CardDetails,
    CardStatus,
    LimitType,
    TransactionStatus,
)
from expense_gateway.utils.date_utils import add_years, ensure_utc, renewal_period_key

ALLOWED_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    CardStatus.PENDING_APPROVAL: frozenset({CardStatus.ACTIVE, CardStatus.REJECTED}),
    CardStatus.ACTIVE: frozenset({CardStatus.LOCKED, CardStatus.SUSPENDED}),
    CardStatus.LOCKED: frozenset({CardStatus.ACTIVE, CardStatus.SUSPENDED}),
    CardStatus.SUSPENDED: frozenset(),
    CardStatus.REJECTED: frozenset(),
}

SPEND_LIMIT_EXHAUSTED = "Spend limit exhausted"
SINGLE_TRANSACTION_CONSUMED = "Single transaction consumed"


def validate_transition(from_status: str, to_status: str) -> None:
    """Raise InvalidTransitionError unless the table allows from -> to"""
    if to_status not in ALLOWED_TRANSITIONS.get(from_status, frozenset()):
        raise InvalidTransitionError(from_status, to_status)


def generate_card_details(now: datetime, card_bin: str = "4571", validity_years: int = 2) -> CardDetails:
    """
    Generate the instrument data issued on activation.

    - Number: BIN + 12 random digits
    - Expiry: same month `validity_years` ahead, MM/YY
    - CVV: 3 digits in 100-999
    """
    digits = "".join(str(secrets.randbelow(10)) for _ in range(12))
    card_number = f"{card_bin}{digits}"
    expiry = add_years(now, validity_years)
    return CardDetails(
        card_number=card_number,
        last4=card_number[-4:],
        expiry_date=f"{expiry.month:02d}/{expiry.year % 100:02d}",
        cvv=str(100 + secrets.randbelow(900)),
    )


def evaluate_auto_suspend(card, transactions: Iterable) -> AutoSuspendVerdict:
    """
    Decide whether a one-time card has been used up.

    Spend-limit exhaustion takes priority over single-transaction consumption.
    Declined postings do not count as completed transactions.
    """
    if card.limit_type != LimitType.ONE_TIME:
        return AutoSuspendVerdict(should_suspend=False)

    if card.current_spend_cents >= card.spend_limit_cents:
        return AutoSuspendVerdict(should_suspend=True, reason=SPEND_LIMIT_EXHAUSTED)

    if card.transaction_count == "1":
        completed = [t for t in transactions if t.status != TransactionStatus.DECLINED]
        if completed:
            return AutoSuspendVerdict(should_suspend=True, reason=SINGLE_TRANSACTION_CONSUMED)

    return AutoSuspendVerdict(should_suspend=False)


def renewal_due(card, now: datetime) -> bool:
    """True when a recurring card has crossed into a new renewal period since its last reset"""
    if card.limit_type != LimitType.RECURRING or not card.renewal_frequency:
        return False
    last_reset: Optional[datetime] = card.last_reset_at
    if last_reset is None:
        return False
    frequency = card.renewal_frequency
    return renewal_period_key(ensure_utc(last_reset), frequency) != renewal_period_key(ensure_utc(now), frequency)


def status_decline(status: str) -> Optional[tuple[str, str]]:
    """(reason, code) when a card in this status cannot be charged"""
    if status == CardStatus.LOCKED:
        return "Card is temporarily locked", "card_locked"
    if status == CardStatus.SUSPENDED:
        return "Card is suspended", "card_suspended"
    if status != CardStatus.ACTIVE:
        return f"Card is not active ({status})", "card_inactive"
    return None


def evaluate_charge(base_spend_cents: int, spend_limit_cents: int, amount_cents: int, wallet_balance_cents: int) -> Optional[tuple[str, str]]:
    """
    Funds and limit checks for an Active card, wallet first.

    Returns (reason, code) on decline, None when the charge may post.
    """
    if wallet_balance_cents < amount_cents:
        return "Insufficient wallet funds", "insufficient_funds"
    if base_spend_cents + amount_cents > spend_limit_cents:
        return "Spend limit exceeded", "limit_exceeded"
    return None
