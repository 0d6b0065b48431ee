"""SQLAlchemy ORM models for cards, invoices, payments and the company wallet"""

import uuid
from sqlalchemy import Column, String, BigInteger, Boolean, DateTime, Date, Integer, ForeignKey, Text, JSON
from sqlalchemy.orm import declarative_base, relationship

from expense_gateway.utils.date_utils import utcnow

Base = declarative_base()


def _uuid() -> str:
    return str(uuid.uuid4())


class Invoice(Base):
    """Payable owed to a vendor"""

    __tablename__ = "invoices"

    id = Column(String(36), primary_key=True, default=_uuid)
    invoice_number = Column(Text, nullable=False)
    vendor_name = Column(Text, nullable=False)
    vendor_email = Column(Text, nullable=True)
    amount_cents = Column(BigInteger, nullable=False)
    due_date = Column(Date, nullable=False)
    status = Column(Text, nullable=False, default="Pending")
    description = Column(Text, nullable=True)
    payment_terms = Column(Text, nullable=True)
    payment_method = Column(Text, nullable=True)
    locked_card_id = Column(String(36), nullable=True, index=True)
    first_payment_method = Column(Text, nullable=True)
    approved_by = Column(Text, nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    payments = relationship("Payment", back_populates="invoice", cascade="all, delete-orphan")


class Card(Base):
    """Virtual payment instrument"""

    __tablename__ = "cards"

    id = Column(String(36), primary_key=True, default=_uuid)
    card_type = Column(Text, nullable=False, default="Virtual")
    cardholder_name = Column(Text, nullable=False)
    limit_type = Column(Text, nullable=False, default="one-time")
    transaction_count = Column(Text, nullable=True)
    renewal_frequency = Column(Text, nullable=True)
    spend_limit_cents = Column(BigInteger, nullable=False)
    current_spend_cents = Column(BigInteger, nullable=False, default=0)
    status = Column(Text, nullable=False)
    purpose = Column(Text, nullable=True)
    invoice_id = Column(String(36), nullable=True, index=True)
    requested_by = Column(Text, nullable=False)
    approved_by = Column(Text, nullable=True)
    card_number = Column(Text, nullable=True)
    last4 = Column(String(4), nullable=True)
    expiry_date = Column(String(5), nullable=True)
    cvv = Column(String(3), nullable=True)
    currency = Column(String(3), nullable=False, default="USD")
    valid_from = Column(DateTime(timezone=True), nullable=True)
    valid_until = Column(DateTime(timezone=True), nullable=True)
    allowed_merchants = Column(JSON, nullable=True)
    allowed_mcc_codes = Column(JSON, nullable=True)
    allowed_countries = Column(JSON, nullable=True)
    channel_restriction = Column(Text, nullable=True)
    gl_account_template = Column(Text, nullable=True)
    department_template = Column(Text, nullable=True)
    cost_center_template = Column(Text, nullable=True)
    is_one_time_use = Column(Boolean, nullable=False, default=False)
    last_reset_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    approvals = relationship("CardApproval", back_populates="card", cascade="all, delete-orphan")


class CardApproval(Base):
    """One approver decision on a card request"""

    __tablename__ = "card_approvals"

    id = Column(String(36), primary_key=True, default=_uuid)
    card_id = Column(String(36), ForeignKey("cards.id", ondelete="CASCADE"), nullable=False, index=True)
    approver_name = Column(Text, nullable=True)
    approver_role = Column(Text, nullable=True)
    status = Column(Text, nullable=False, default="Pending")
    comments = Column(Text, nullable=True)
    approval_level = Column(Integer, nullable=False, default=1)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    card = relationship("Card", back_populates="approvals")


class Transaction(Base):
    """Posted charge or AP disbursement"""

    __tablename__ = "transactions"

    id = Column(String(36), primary_key=True, default=_uuid)
    card_id = Column(String(36), nullable=True, index=True)
    invoice_id = Column(String(36), nullable=True, index=True)
    amount_cents = Column(BigInteger, nullable=False)
    vendor_name = Column(Text, nullable=False)
    transaction_date = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    status = Column(Text, nullable=False)
    gl_account = Column(Text, nullable=True)
    department = Column(Text, nullable=True)
    cost_center = Column(Text, nullable=True)
    memo = Column(Text, nullable=True)
    receipt_url = Column(Text, nullable=True)
    payment_method = Column(Text, nullable=True)
    synced_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


class Payment(Base):
    """AP payment installment against an invoice"""

    __tablename__ = "payments"

    id = Column(String(36), primary_key=True, default=_uuid)
    invoice_id = Column(String(36), ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)
    amount_cents = Column(BigInteger, nullable=False)
    payment_method = Column(Text, nullable=False)
    status = Column(Text, nullable=False, default="Scheduled")
    due_date = Column(Date, nullable=True)
    paid_date = Column(DateTime(timezone=True), nullable=True)
    gl_account = Column(Text, nullable=True)
    department = Column(Text, nullable=True)
    cost_center = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    invoice = relationship("Invoice", back_populates="payments")


class CompanyWallet(Base):
    """Singleton balance funding every charge and wallet-sourced payment"""

    __tablename__ = "company_wallet"

    id = Column(Integer, primary_key=True, default=1)
    balance_cents = Column(BigInteger, nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)


class GLAccount(Base):
    __tablename__ = "gl_accounts"

    id = Column(String(36), primary_key=True, default=_uuid)
    code = Column(Text, nullable=False, unique=True)
    name = Column(Text, nullable=False)
    category = Column(Text, nullable=False)


class Department(Base):
    __tablename__ = "departments"

    id = Column(String(36), primary_key=True, default=_uuid)
    code = Column(Text, nullable=False, unique=True)
    name = Column(Text, nullable=False)


class CostCenter(Base):
    __tablename__ = "cost_centers"

    id = Column(String(36), primary_key=True, default=_uuid)
    code = Column(Text, nullable=False, unique=True)
    name = Column(Text, nullable=False)
    department_id = Column(String(36), ForeignKey("departments.id"), nullable=True)
