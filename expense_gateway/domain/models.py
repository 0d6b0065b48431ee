"""Domain models - pure Python dataclasses and status vocabularies"""

from dataclasses import dataclass, field
from datetime import date
from typing import Any, List, Optional


class CardStatus:
    PENDING_APPROVAL = "Pending Approval"
    ACTIVE = "Active"
    LOCKED = "Locked"
    SUSPENDED = "Suspended"
    REJECTED = "Rejected"


class ApprovalStatus:
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class InvoiceStatus:
    PENDING = "Pending"
    APPROVED = "Approved"
    SCHEDULED = "Scheduled"
    PARTIALLY_PAID = "Partially Paid"
    PAID = "Paid"
    OVERDUE = "Overdue"
    CARD_SHARED = "Card Shared - Awaiting Payment"


class TransactionStatus:
    PENDING_RECEIPT = "Pending Receipt"
    PENDING_CODING = "Pending Coding"
    READY_TO_SYNC = "Ready to Sync"
    SYNCED = "Synced"
    APPROVED = "Approved"  # ACH/check postings before coding
    DECLINED = "Declined"


class PaymentStatus:
    SCHEDULED = "Scheduled"
    PAID = "Paid"
    FAILED = "Failed"


class PaymentMethod:
    CARD = "card"
    ACH = "ach"
    CHECK = "check"


class LimitType:
    ONE_TIME = "one-time"
    RECURRING = "recurring"


@dataclass
class CardDetails:
    """Instrument data generated once, at activation"""

    card_number: str
    last4: str
    expiry_date: str  # MM/YY
    cvv: str


@dataclass
class CardDefaults:
    """Card shape derived from an invoice's payment terms"""

    limit_type: str
    transaction_count: Optional[str] = None  # "1" | "unlimited"
    renewal_frequency: Optional[str] = None  # month | quarter | year


@dataclass
class AutoSuspendVerdict:
    """Output of the one-time card exhaustion check"""

    should_suspend: bool
    reason: Optional[str] = None


@dataclass
class PaymentFact:
    """The parts of a payment that drive invoice status"""

    amount_cents: int
    status: str
    due_date: Optional[date] = None


@dataclass
class AuthorizationResult:
    """Outcome of a simulated charge; declines are results, not errors"""

    approved: bool
    transaction: Any = None
    new_wallet_balance_cents: Optional[int] = None
    new_card_spend_cents: Optional[int] = None
    monthly_reset: bool = False
    auto_suspended: bool = False
    decline_reason: Optional[str] = None
    decline_code: Optional[str] = None

    @classmethod
    def declined(cls, reason: str, code: str) -> "AuthorizationResult":
        return cls(approved=False, decline_reason=reason, decline_code=code)


@dataclass
class VendorTotal:
    vendor: str
    amount_cents: int
    transactions: int


@dataclass
class CategoryTotal:
    category: str
    amount_cents: int
    percentage: int


@dataclass
class MonthTotal:
    month: str  # YYYY-MM
    amount_cents: int


@dataclass
class SpendReport:
    """Dashboard and reporting aggregates"""

    month_to_date_spend_cents: int
    total_limit_cents: int
    total_spend_cents: int
    utilization_percent: int
    cards_issued_this_month: int
    spend_by_category: List[CategoryTotal] = field(default_factory=list)
    top_vendors: List[VendorTotal] = field(default_factory=list)
    monthly_trend: List[MonthTotal] = field(default_factory=list)
