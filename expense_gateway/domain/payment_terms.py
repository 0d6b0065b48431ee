"""Payment terms - card defaults and installment schedules derived from invoice terms"""

from datetime import date, timedelta
from typing import Dict, List, Optional

from expense_gateway.domain.models import CardDefaults, LimitType

TERMS_CARD_DEFAULTS: Dict[str, CardDefaults] = {
    "Due on Receipt": CardDefaults(LimitType.ONE_TIME, transaction_count="1"),
    "Net 30": CardDefaults(LimitType.ONE_TIME, transaction_count="1"),
    "Net 60": CardDefaults(LimitType.ONE_TIME, transaction_count="1"),
    "Net 90": CardDefaults(LimitType.ONE_TIME, transaction_count="1"),
    "2 Installments": CardDefaults(LimitType.ONE_TIME, transaction_count="unlimited"),
    "3 Installments": CardDefaults(LimitType.ONE_TIME, transaction_count="unlimited"),
    "4 Installments": CardDefaults(LimitType.ONE_TIME, transaction_count="unlimited"),
    "Monthly Recurring": CardDefaults(LimitType.RECURRING, renewal_frequency="month"),
    "Quarterly Recurring": CardDefaults(LimitType.RECURRING, renewal_frequency="quarter"),
    "Yearly Recurring": CardDefaults(LimitType.RECURRING, renewal_frequency="year"),
}

INSTALLMENT_TERMS: Dict[str, int] = {
    "2 Installments": 2,
    "3 Installments": 3,
    "4 Installments": 4,
}


def card_defaults_for_terms(payment_terms: Optional[str]) -> CardDefaults:
    """Look up the card shape for an invoice's terms; unknown terms get a single-use card"""
    defaults = TERMS_CARD_DEFAULTS.get(payment_terms or "")
    if defaults is None:
        return CardDefaults(LimitType.ONE_TIME, transaction_count="1")
    return CardDefaults(defaults.limit_type, defaults.transaction_count, defaults.renewal_frequency)


def installment_count(payment_terms: Optional[str]) -> int:
    """Number of payments the terms call for (1 for everything that isn't an installment plan)"""
    return INSTALLMENT_TERMS.get(payment_terms or "", 1)


def generate_installment_schedule(
    amount_cents: int,
    num_installments: int,
    first_due_date: date,
    interval_days: int = 30,
) -> List[tuple[date, int]]:
    """
    Split an invoice total into equal installments.

    - `interval_days` apart, starting on `first_due_date`
    - Last installment absorbs the rounding remainder

    Example:
        $400.03 over 4 -> [$100.00, $100.00, $100.00, $100.03]
    """
    if amount_cents <= 0 or num_installments <= 0:
        return []

    base_amount = amount_cents // num_installments
    remainder = amount_cents % num_installments

    schedule = []
    for i in range(num_installments):
        due_date = first_due_date + timedelta(days=i * interval_days)
        amount = base_amount + (remainder if i == num_installments - 1 else 0)
        schedule.append((due_date, amount))

    return schedule
