"""Data access layer for cards, invoices, payments and the wallet"""

from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session
from expense_gateway.config import settings
from expense_gateway.infrastructure.database.models import (
    Card,
    CardApproval,
    CompanyWallet,
    CostCenter,
    Department,
    GLAccount,
    Invoice,
    Payment,
    Transaction,
)

WALLET_ID = 1


class CardRepository:
    """Repository for cards"""

    def __init__(self, db: Session):
        self.db = db

    def create(self, **fields: Any) -> Card:
        card = Card(**fields)
        self.db.add(card)
        self.db.flush()  # Get ID without committing
        return card

    def get(self, card_id: str) -> Optional[Card]:
        return self.db.query(Card).filter(Card.id == card_id).first()

    def get_for_update(self, card_id: str) -> Optional[Card]:
        """Row-lock the card for the rest of the transaction"""
        return (
            self.db.query(Card)
            .filter(Card.id == card_id)
            .with_for_update()
            .populate_existing()
            .first()
        )

    def list(self) -> List[Card]:
        return self.db.query(Card).order_by(Card.created_at.desc()).all()

    def delete(self, card: Card) -> None:
        self.db.delete(card)
        self.db.flush()


class ApprovalRepository:
    """Repository for card approvals"""

    def __init__(self, db: Session):
        self.db = db

    def create(self, card_id: str, approval_level: int = 1, approver_name: Optional[str] = None,
               approver_role: Optional[str] = None, comments: Optional[str] = None) -> CardApproval:
        approval = CardApproval(
            card_id=card_id,
            approval_level=approval_level,
            approver_name=approver_name,
            approver_role=approver_role,
            comments=comments,
            status="Pending",
        )
        self.db.add(approval)
        self.db.flush()
        return approval

    def get_for_update(self, approval_id: str) -> Optional[CardApproval]:
        return (
            self.db.query(CardApproval)
            .filter(CardApproval.id == approval_id)
            .with_for_update()
            .populate_existing()
            .first()
        )

    def get(self, approval_id: str) -> Optional[CardApproval]:
        return self.db.query(CardApproval).filter(CardApproval.id == approval_id).first()

    def list(self, status: Optional[str] = None) -> List[CardApproval]:
        query = self.db.query(CardApproval)
        if status:
            query = query.filter(CardApproval.status == status)
        return query.order_by(CardApproval.created_at.desc()).all()

    def pending_for_card(self, card_id: str) -> List[CardApproval]:
        return (
            self.db.query(CardApproval)
            .filter(CardApproval.card_id == card_id, CardApproval.status == "Pending")
            .all()
        )


class InvoiceRepository:
    """Repository for invoices"""

    def __init__(self, db: Session):
        self.db = db

    def create(self, **fields: Any) -> Invoice:
        invoice = Invoice(**fields)
        self.db.add(invoice)
        self.db.flush()
        return invoice

    def get(self, invoice_id: str) -> Optional[Invoice]:
        return self.db.query(Invoice).filter(Invoice.id == invoice_id).first()

    def get_for_update(self, invoice_id: str) -> Optional[Invoice]:
        return (
            self.db.query(Invoice)
            .filter(Invoice.id == invoice_id)
            .with_for_update()
            .populate_existing()
            .first()
        )

    def list(self) -> List[Invoice]:
        return self.db.query(Invoice).order_by(Invoice.created_at.desc()).all()

    def locked_to_card(self, card_id: str) -> List[Invoice]:
        """Invoices whose lock points at this card"""
        return self.db.query(Invoice).filter(Invoice.locked_card_id == card_id).all()

    def link_card(self, invoice_id: str, card_id: str, payment_method: str,
                  expected_card_id: Optional[str] = None) -> bool:
        """
        Point the invoice at a card, only if its lock is still what the caller saw.

        Returns False when another request linked a card first.
        """
        query = self.db.query(Invoice).filter(Invoice.id == invoice_id)
        if expected_card_id is None:
            query = query.filter(Invoice.locked_card_id.is_(None))
        else:
            query = query.filter(Invoice.locked_card_id == expected_card_id)
        updated = query.update(
            {Invoice.locked_card_id: card_id, Invoice.payment_method: payment_method},
            synchronize_session="fetch",
        )
        return updated == 1

    def apply(self, invoice: Invoice, changes: Dict[str, Any]) -> Invoice:
        for name, value in changes.items():
            setattr(invoice, name, value)
        self.db.flush()
        return invoice

    def delete(self, invoice: Invoice) -> None:
        self.db.delete(invoice)
        self.db.flush()


class TransactionRepository:
    """Repository for posted transactions"""

    def __init__(self, db: Session):
        self.db = db

    def create(self, **fields: Any) -> Transaction:
        txn = Transaction(**fields)
        self.db.add(txn)
        self.db.flush()
        return txn

    def get(self, transaction_id: str) -> Optional[Transaction]:
        return self.db.query(Transaction).filter(Transaction.id == transaction_id).first()

    def list(self, status: Optional[str] = None) -> List[Transaction]:
        query = self.db.query(Transaction)
        if status:
            query = query.filter(Transaction.status == status)
        return query.order_by(Transaction.created_at.desc()).all()

    def list_by_card(self, card_id: str) -> List[Transaction]:
        return (
            self.db.query(Transaction)
            .filter(Transaction.card_id == card_id)
            .order_by(Transaction.created_at.desc())
            .all()
        )

    def list_by_ids(self, transaction_ids: List[str]) -> List[Transaction]:
        return self.db.query(Transaction).filter(Transaction.id.in_(transaction_ids)).all()


class PaymentRepository:
    """Repository for AP payments"""

    def __init__(self, db: Session):
        self.db = db

    def create(self, **fields: Any) -> Payment:
        payment = Payment(**fields)
        self.db.add(payment)
        self.db.flush()
        return payment

    def get(self, payment_id: str) -> Optional[Payment]:
        return self.db.query(Payment).filter(Payment.id == payment_id).first()

    def list(self, invoice_id: Optional[str] = None) -> List[Payment]:
        query = self.db.query(Payment)
        if invoice_id:
            query = query.filter(Payment.invoice_id == invoice_id)
        return query.order_by(Payment.created_at.desc()).all()


class WalletRepository:
    """Repository for the company wallet singleton"""

    def __init__(self, db: Session):
        self.db = db

    def get(self) -> CompanyWallet:
        wallet = self.db.query(CompanyWallet).filter(CompanyWallet.id == WALLET_ID).first()
        return wallet or self._initialize()

    def get_for_update(self) -> CompanyWallet:
        """Row-lock the wallet; every debit serializes here"""
        wallet = (
            self.db.query(CompanyWallet)
            .filter(CompanyWallet.id == WALLET_ID)
            .with_for_update()
            .populate_existing()
            .first()
        )
        return wallet or self._initialize()

    def _initialize(self) -> CompanyWallet:
        wallet = CompanyWallet(id=WALLET_ID, balance_cents=settings.initial_wallet_balance_cents)
        self.db.add(wallet)
        self.db.flush()
        return wallet


class ReferenceDataRepository:
    """GL accounts, departments and cost centers"""

    def __init__(self, db: Session):
        self.db = db

    def list_gl_accounts(self) -> List[GLAccount]:
        return self.db.query(GLAccount).order_by(GLAccount.code).all()

    def gl_categories(self) -> Dict[str, str]:
        """GL code -> reporting category"""
        return {a.code: a.category for a in self.list_gl_accounts()}

    def create_gl_account(self, code: str, name: str, category: str) -> GLAccount:
        account = GLAccount(code=code, name=name, category=category)
        self.db.add(account)
        self.db.flush()
        return account

    def list_departments(self) -> List[Department]:
        return self.db.query(Department).order_by(Department.code).all()

    def create_department(self, code: str, name: str) -> Department:
        department = Department(code=code, name=name)
        self.db.add(department)
        self.db.flush()
        return department

    def list_cost_centers(self) -> List[CostCenter]:
        return self.db.query(CostCenter).order_by(CostCenter.code).all()

    def create_cost_center(self, code: str, name: str, department_id: Optional[str] = None) -> CostCenter:
        center = CostCenter(code=code, name=name, department_id=department_id)
        self.db.add(center)
        self.db.flush()
        return center
