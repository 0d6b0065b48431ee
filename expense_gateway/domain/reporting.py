"""Spend reporting - pure aggregation over cards and transactions"""

from collections import defaultdict
from datetime import date
from typing import Dict, Iterable, List

from expense_gateway.domain.models import (
    CardStatus,
    CategoryTotal,
    MonthTotal,
    SpendReport,
    TransactionStatus,
    VendorTotal,
)
from expense_gateway.utils.date_utils import ensure_utc, last_n_months

UNCATEGORIZED = "Other"


def _posted(transactions: Iterable) -> List:
    return [t for t in transactions if t.status != TransactionStatus.DECLINED]


def spend_by_category(transactions: Iterable, gl_categories: Dict[str, str]) -> List[CategoryTotal]:
    """
    Group spend by the category of each transaction's GL account.

    Uncoded or unknown GL codes land in "Other". Percentages are whole numbers
    of total spend, largest category first.
    """
    totals: Dict[str, int] = defaultdict(int)
    for txn in transactions:
        category = gl_categories.get(txn.gl_account or "", UNCATEGORIZED)
        totals[category] += txn.amount_cents

    grand_total = sum(totals.values())
    result = [
        CategoryTotal(
            category=category,
            amount_cents=amount,
            percentage=round(amount * 100 / grand_total) if grand_total else 0,
        )
        for category, amount in totals.items()
    ]
    return sorted(result, key=lambda c: c.amount_cents, reverse=True)


def top_vendors(transactions: Iterable, limit: int = 5) -> List[VendorTotal]:
    """Vendors ranked by total spend"""
    amounts: Dict[str, int] = defaultdict(int)
    counts: Dict[str, int] = defaultdict(int)
    for txn in transactions:
        amounts[txn.vendor_name] += txn.amount_cents
        counts[txn.vendor_name] += 1

    ranked = sorted(amounts.items(), key=lambda item: item[1], reverse=True)[:limit]
    return [VendorTotal(vendor=v, amount_cents=a, transactions=counts[v]) for v, a in ranked]


def monthly_trend(transactions: Iterable, today: date, months: int = 3) -> List[MonthTotal]:
    """Spend per calendar month for the last `months` months, oldest first"""
    totals: Dict[tuple, int] = defaultdict(int)
    for txn in transactions:
        posted_at = ensure_utc(txn.transaction_date)
        totals[(posted_at.year, posted_at.month)] += txn.amount_cents

    return [
        MonthTotal(month=f"{year:04d}-{month:02d}", amount_cents=totals.get((year, month), 0))
        for year, month in last_n_months(today, months)
    ]


def build_spend_report(
    cards: Iterable,
    transactions: Iterable,
    gl_categories: Dict[str, str],
    today: date,
    months: int = 3,
) -> SpendReport:
    """Assemble the reporting dashboard from raw rows"""
    cards = list(cards)
    posted = _posted(transactions)

    month_to_date = sum(
        t.amount_cents
        for t in posted
        if (ensure_utc(t.transaction_date).year, ensure_utc(t.transaction_date).month) == (today.year, today.month)
    )

    open_cards = [c for c in cards if c.status in (CardStatus.ACTIVE, CardStatus.LOCKED)]
    total_limit = sum(c.spend_limit_cents for c in open_cards)
    total_spend = sum(c.current_spend_cents for c in open_cards)
    utilization = round(total_spend * 100 / total_limit) if total_limit else 0

    issued_this_month = sum(
        1
        for c in cards
        if c.created_at is not None
        and (ensure_utc(c.created_at).year, ensure_utc(c.created_at).month) == (today.year, today.month)
    )

    return SpendReport(
        month_to_date_spend_cents=month_to_date,
        total_limit_cents=total_limit,
        total_spend_cents=total_spend,
        utilization_percent=utilization,
        cards_issued_this_month=issued_this_month,
        spend_by_category=spend_by_category(posted, gl_categories),
        top_vendors=top_vendors(posted),
        monthly_trend=monthly_trend(posted, today, months),
    )
