"""Pydantic schemas for API request/response validation"""

from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

LimitTypeField = Literal["one-time", "recurring"]
TransactionCountField = Literal["1", "unlimited"]
RenewalField = Literal["month", "quarter", "year"]
ChannelField = Literal["online", "in-store", "both"]


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# Cards

class CardCreate(BaseModel):
    """Request body for POST /v1/cards"""

    model_config = ConfigDict(extra="forbid")

    cardholder_name: str = Field(..., min_length=1)
    spend_limit_cents: int = Field(..., gt=0, description="Spend limit in cents")
    status: Literal["Pending Approval", "Active"] = "Pending Approval"
    card_type: str = "Virtual"
    limit_type: LimitTypeField = "one-time"
    transaction_count: Optional[TransactionCountField] = None
    renewal_frequency: Optional[RenewalField] = None
    purpose: Optional[str] = None
    requested_by: Optional[str] = None
    currency: str = Field("USD", min_length=3, max_length=3)
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    allowed_merchants: Optional[List[str]] = None
    allowed_mcc_codes: Optional[List[str]] = None
    allowed_countries: Optional[List[str]] = None
    channel_restriction: Optional[ChannelField] = None
    gl_account_template: Optional[str] = None
    department_template: Optional[str] = None
    cost_center_template: Optional[str] = None
    approver_name: Optional[str] = None
    approver_role: Optional[str] = None


class CardUpdate(BaseModel):
    """Request body for PATCH /v1/cards/{card_id}; only sent fields apply"""

    model_config = ConfigDict(extra="forbid")

    status: Optional[Literal["Active", "Locked", "Suspended", "Rejected"]] = None
    cardholder_name: Optional[str] = None
    spend_limit_cents: Optional[int] = Field(None, gt=0)
    purpose: Optional[str] = None
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    allowed_merchants: Optional[List[str]] = None
    allowed_mcc_codes: Optional[List[str]] = None
    allowed_countries: Optional[List[str]] = None
    channel_restriction: Optional[ChannelField] = None
    gl_account_template: Optional[str] = None
    department_template: Optional[str] = None
    cost_center_template: Optional[str] = None


class CardResponse(ORMModel):
    id: str
    card_type: str
    cardholder_name: str
    limit_type: str
    transaction_count: Optional[str] = None
    renewal_frequency: Optional[str] = None
    spend_limit_cents: int
    current_spend_cents: int
    status: str
    purpose: Optional[str] = None
    invoice_id: Optional[str] = None
    requested_by: str
    approved_by: Optional[str] = None
    card_number: Optional[str] = None
    last4: Optional[str] = None
    expiry_date: Optional[str] = None
    cvv: Optional[str] = None
    currency: str
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    allowed_merchants: Optional[List[str]] = None
    allowed_mcc_codes: Optional[List[str]] = None
    allowed_countries: Optional[List[str]] = None
    channel_restriction: Optional[str] = None
    gl_account_template: Optional[str] = None
    department_template: Optional[str] = None
    cost_center_template: Optional[str] = None
    is_one_time_use: bool
    last_reset_at: Optional[datetime] = None
    created_at: datetime


class AutoSuspendResponse(BaseModel):
    card_id: str
    should_suspend: bool
    reason: Optional[str] = None


# Approvals

class ApprovalCreate(BaseModel):
    """Request body for POST /v1/card-approvals"""

    card_id: str
    approver_name: Optional[str] = None
    approver_role: Optional[str] = None
    approval_level: int = Field(1, ge=1)
    comments: Optional[str] = None


class ApprovalDecision(BaseModel):
    """Request body for PATCH /v1/card-approvals/{approval_id}"""

    status: Literal["Approved", "Rejected"]
    approver_name: str = Field(..., min_length=1)
    comments: Optional[str] = None


class ApprovalResponse(ORMModel):
    id: str
    card_id: str
    approver_name: Optional[str] = None
    approver_role: Optional[str] = None
    status: str
    comments: Optional[str] = None
    approval_level: int
    approved_at: Optional[datetime] = None
    created_at: datetime


class PendingApprovalResponse(BaseModel):
    approval: ApprovalResponse
    card: CardResponse


class CardRequestResponse(BaseModel):
    card: CardResponse
    approval: Optional[ApprovalResponse] = None


class ApprovalDecisionResponse(BaseModel):
    approval: ApprovalResponse
    card: CardResponse


# Invoices and payments

class InvoiceCreate(BaseModel):
    """Request body for POST /v1/invoices"""

    model_config = ConfigDict(extra="forbid")

    invoice_number: str = Field(..., min_length=1)
    vendor_name: str = Field(..., min_length=1)
    vendor_email: Optional[str] = None
    amount_cents: int = Field(..., gt=0)
    due_date: date
    status: str = "Pending"
    description: Optional[str] = None
    payment_terms: Optional[str] = None


class InvoiceUpdate(BaseModel):
    """Request body for PATCH /v1/invoices/{invoice_id}; only sent fields apply"""

    model_config = ConfigDict(extra="forbid")

    invoice_number: Optional[str] = None
    vendor_name: Optional[str] = None
    vendor_email: Optional[str] = None
    amount_cents: Optional[int] = Field(None, gt=0)
    due_date: Optional[date] = None
    status: Optional[str] = None
    description: Optional[str] = None
    payment_terms: Optional[str] = None
    payment_method: Optional[str] = None
    locked_card_id: Optional[str] = None
    first_payment_method: Optional[str] = None
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None


class InvoiceResponse(ORMModel):
    id: str
    invoice_number: str
    vendor_name: str
    vendor_email: Optional[str] = None
    amount_cents: int
    due_date: date
    status: str
    description: Optional[str] = None
    payment_terms: Optional[str] = None
    payment_method: Optional[str] = None
    locked_card_id: Optional[str] = None
    first_payment_method: Optional[str] = None
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    created_at: datetime


class PayInvoiceRequest(BaseModel):
    """Request body for POST /v1/invoices/{invoice_id}/pay"""

    method: Literal["card", "shared_card", "ach", "check"]
    cardholder_name: Optional[str] = None
    vendor_email: Optional[str] = None
    amount_cents: Optional[int] = Field(None, gt=0)
    source: Literal["wallet", "external"] = "wallet"
    gl_account_template: Optional[str] = None
    department_template: Optional[str] = None
    cost_center_template: Optional[str] = None


class PaymentCreate(BaseModel):
    """Request body for POST /v1/payments"""

    model_config = ConfigDict(extra="forbid")

    invoice_id: str
    amount_cents: int = Field(..., gt=0)
    payment_method: str = Field(..., min_length=1)
    status: Literal["Scheduled", "Paid", "Failed"] = "Scheduled"
    due_date: Optional[date] = None
    paid_date: Optional[datetime] = None
    gl_account: Optional[str] = None
    department: Optional[str] = None
    cost_center: Optional[str] = None


class PaymentUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    amount_cents: Optional[int] = Field(None, gt=0)
    payment_method: Optional[str] = None
    status: Optional[Literal["Scheduled", "Paid", "Failed"]] = None
    due_date: Optional[date] = None
    paid_date: Optional[datetime] = None
    gl_account: Optional[str] = None
    department: Optional[str] = None
    cost_center: Optional[str] = None


class PaymentResponse(ORMModel):
    id: str
    invoice_id: str
    amount_cents: int
    payment_method: str
    status: str
    due_date: Optional[date] = None
    paid_date: Optional[datetime] = None
    gl_account: Optional[str] = None
    department: Optional[str] = None
    cost_center: Optional[str] = None
    created_at: datetime


# Transactions

class TransactionResponse(ORMModel):
    id: str
    card_id: Optional[str] = None
    invoice_id: Optional[str] = None
    amount_cents: int
    vendor_name: str
    transaction_date: datetime
    status: str
    gl_account: Optional[str] = None
    department: Optional[str] = None
    cost_center: Optional[str] = None
    memo: Optional[str] = None
    receipt_url: Optional[str] = None
    payment_method: Optional[str] = None
    synced_at: Optional[datetime] = None


class TransactionCoding(BaseModel):
    """Request body for PATCH /v1/transactions/{transaction_id}; status is derived, never sent"""

    model_config = ConfigDict(extra="forbid")

    gl_account: Optional[str] = None
    department: Optional[str] = None
    cost_center: Optional[str] = None
    memo: Optional[str] = None
    receipt_url: Optional[str] = None


class ReceiptUpload(BaseModel):
    receipt_url: str = Field(..., min_length=1)


class SyncRequest(BaseModel):
    transaction_ids: Optional[List[str]] = None


class SyncResponse(BaseModel):
    synced: int
    transactions: List[TransactionResponse]


# Authorization

class AuthorizationResponse(BaseModel):
    """Charge outcome; `declined` mirrors `not approved` for clients keyed on it"""

    approved: bool
    declined: bool
    decline_reason: Optional[str] = None
    decline_code: Optional[str] = None
    transaction: Optional[TransactionResponse] = None
    new_wallet_balance_cents: Optional[int] = None
    new_card_spend_cents: Optional[int] = None
    monthly_reset: bool = False
    auto_suspended: bool = False

    @classmethod
    def from_result(cls, result) -> "AuthorizationResponse":
        return cls(
            approved=result.approved,
            declined=not result.approved,
            decline_reason=result.decline_reason,
            decline_code=result.decline_code,
            transaction=TransactionResponse.model_validate(result.transaction) if result.transaction else None,
            new_wallet_balance_cents=result.new_wallet_balance_cents,
            new_card_spend_cents=result.new_card_spend_cents,
            monthly_reset=result.monthly_reset,
            auto_suspended=result.auto_suspended,
        )


class InvoicePaymentResponse(BaseModel):
    invoice: InvoiceResponse
    card: Optional[CardResponse] = None
    authorization: Optional[AuthorizationResponse] = None
    payment: Optional[PaymentResponse] = None
    transaction: Optional[TransactionResponse] = None


# Wallet

class WalletAmount(BaseModel):
    amount_cents: int = Field(..., description="Amount in cents; must be positive")


class WalletResponse(ORMModel):
    balance_cents: int
    updated_at: datetime


# Simulation

class SimulateTransactionRequest(BaseModel):
    """Request body for POST /v1/simulate/transaction"""

    card_id: str
    amount_cents: int = Field(..., description="Charge amount in cents")
    merchant: Optional[str] = None


class SimulateInvoiceRequest(BaseModel):
    vendor_name: str = Field(..., min_length=1)
    amount_cents: int = Field(..., gt=0)
    due_date: date


class SimulatePayInvoiceRequest(BaseModel):
    invoice_id: str
    cardholder_name: str = Field(..., min_length=1)
    spend_limit_cents: Optional[int] = Field(None, gt=0)


# Reference data

class GLAccountCreate(BaseModel):
    code: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1)


class GLAccountResponse(ORMModel):
    id: str
    code: str
    name: str
    category: str


class DepartmentCreate(BaseModel):
    code: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)


class DepartmentResponse(ORMModel):
    id: str
    code: str
    name: str


class CostCenterCreate(BaseModel):
    code: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    department_id: Optional[str] = None


class CostCenterResponse(ORMModel):
    id: str
    code: str
    name: str
    department_id: Optional[str] = None


# Reports

class CategoryTotalSchema(ORMModel):
    category: str
    amount_cents: int
    percentage: int


class VendorTotalSchema(ORMModel):
    vendor: str
    amount_cents: int
    transactions: int


class MonthTotalSchema(ORMModel):
    month: str
    amount_cents: int


class SpendReportResponse(ORMModel):
    """Response for GET /v1/reports/summary"""

    month_to_date_spend_cents: int
    total_limit_cents: int
    total_spend_cents: int
    utilization_percent: int
    cards_issued_this_month: int
    spend_by_category: List[CategoryTotalSchema]
    top_vendors: List[VendorTotalSchema]
    monthly_trend: List[MonthTotalSchema]
