"""Transaction coding, receipts and ERP sync"""

import logging
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session

from expense_gateway.domain.exceptions import ConflictError, NotFoundError, ValidationError
from expense_gateway.domain.models import TransactionStatus
from expense_gateway.domain.statuses import transaction_status_for
from expense_gateway.infrastructure.clients.erp import ErpClient
from expense_gateway.infrastructure.database.models import Transaction
from expense_gateway.infrastructure.database.repositories import TransactionRepository
from expense_gateway.infrastructure.database.session import unit_of_work
from expense_gateway.utils.date_utils import utcnow

logger = logging.getLogger(__name__)

CODING_FIELDS = frozenset({"gl_account", "department", "cost_center", "memo", "receipt_url"})


class TransactionService:
    """Transactions change only through coding, receipts and sync; status follows"""

    def __init__(self, db: Session):
        self.db = db
        self.transactions = TransactionRepository(db)

    def get_transaction(self, transaction_id: str) -> Transaction:
        txn = self.transactions.get(transaction_id)
        if txn is None:
            raise NotFoundError("Transaction", transaction_id)
        return txn

    def list_transactions(self, status: Optional[str] = None) -> List[Transaction]:
        return self.transactions.list(status)

    def list_for_card(self, card_id: str) -> List[Transaction]:
        return self.transactions.list_by_card(card_id)

    def update_coding(self, transaction_id: str, changes: Dict[str, Any]) -> Transaction:
        unknown = sorted(set(changes) - CODING_FIELDS)
        if unknown:
            raise ValidationError(f"Fields not updatable on a transaction: {', '.join(unknown)}")

        with unit_of_work(self.db):
            txn = self.get_transaction(transaction_id)
            if txn.status == TransactionStatus.DECLINED:
                raise ConflictError("Declined transactions cannot be coded")
            if txn.synced_at is not None:
                raise ConflictError("Transaction already synced to the ERP")
            for name, value in changes.items():
                setattr(txn, name, value)
            txn.status = transaction_status_for(txn)
            self.db.flush()
        return txn

    def attach_receipt(self, transaction_id: str, receipt_url: str) -> Transaction:
        if not receipt_url:
            raise ValidationError("receipt_url is required")
        return self.update_coding(transaction_id, {"receipt_url": receipt_url})

    async def sync_to_erp(self, erp_client: ErpClient, transaction_ids: Optional[List[str]] = None) -> List[Transaction]:
        """
        Push Ready to Sync transactions to the ERP and mark them Synced.

        Nothing is marked when the ERP call fails.
        """
        if transaction_ids:
            candidates = self.transactions.list_by_ids(transaction_ids)
            missing = set(transaction_ids) - {t.id for t in candidates}
            if missing:
                raise NotFoundError("Transaction", sorted(missing)[0])
            not_ready = [t.id for t in candidates if t.status != TransactionStatus.READY_TO_SYNC]
            if not_ready:
                raise ConflictError(f"Transactions not ready to sync: {', '.join(sorted(not_ready))}")
        else:
            candidates = self.transactions.list(TransactionStatus.READY_TO_SYNC)

        if not candidates:
            return []

        payload = {
            "transactions": [
                {
                    "id": t.id,
                    "date": t.transaction_date.isoformat(),
                    "amount_cents": t.amount_cents,
                    "vendor": t.vendor_name,
                    "gl_account": t.gl_account,
                    "department": t.department,
                    "cost_center": t.cost_center,
                    "memo": t.memo,
                    "receipt_url": t.receipt_url,
                    "card_id": t.card_id,
                    "invoice_id": t.invoice_id,
                }
                for t in candidates
            ]
        }
        await erp_client.push_transactions(payload)

        with unit_of_work(self.db):
            synced_at = utcnow()
            for txn in candidates:
                txn.synced_at = synced_at
                txn.status = transaction_status_for(txn)
            self.db.flush()

        logger.info("Transactions synced to ERP", extra={"count": len(candidates)})
        return candidates
