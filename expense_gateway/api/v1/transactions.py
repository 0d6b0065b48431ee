"""/v1/transactions - transaction feed, coding, receipts and ERP sync"""

import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from expense_gateway.api.dependencies import get_erp_client, get_request_id
from expense_gateway.api.v1.schemas import (
    ReceiptUpload,
    SyncRequest,
    SyncResponse,
    TransactionCoding,
    TransactionResponse,
)
from expense_gateway.infrastructure.clients.erp import ErpClient
from expense_gateway.infrastructure.database.session import get_db
from expense_gateway.services.transactions import TransactionService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/transactions", response_model=List[TransactionResponse])
def list_transactions(
    status_filter: Optional[str] = Query(None, alias="status", description="e.g. Pending Receipt, Ready to Sync"),
    db: Session = Depends(get_db),
):
    return [TransactionResponse.model_validate(t) for t in TransactionService(db).list_transactions(status_filter)]


@router.post("/transactions/sync", response_model=SyncResponse)
async def sync_transactions(
    request: Request,
    request_body: Optional[SyncRequest] = None,
    db: Session = Depends(get_db),
    erp_client: ErpClient = Depends(get_erp_client),
):
    """
    Push Ready to Sync transactions to the ERP.

    Without a body every Ready to Sync transaction is pushed. ERP failures
    return 503 and leave every transaction unsynced.
    """
    transaction_ids = request_body.transaction_ids if request_body else None
    synced = await TransactionService(db).sync_to_erp(erp_client, transaction_ids)
    logger.info("ERP sync completed", extra={"request_id": get_request_id(request), "count": len(synced)})
    return SyncResponse(
        synced=len(synced),
        transactions=[TransactionResponse.model_validate(t) for t in synced],
    )


@router.get("/transactions/{transaction_id}", response_model=TransactionResponse)
def get_transaction(transaction_id: str, db: Session = Depends(get_db)):
    return TransactionResponse.model_validate(TransactionService(db).get_transaction(transaction_id))


@router.patch("/transactions/{transaction_id}", response_model=TransactionResponse)
def code_transaction(transaction_id: str, request_body: TransactionCoding, db: Session = Depends(get_db)):
    """Update coding fields; status is re-derived from receipt and coding"""
    txn = TransactionService(db).update_coding(transaction_id, request_body.model_dump(exclude_unset=True))
    return TransactionResponse.model_validate(txn)


@router.post("/transactions/{transaction_id}/receipt", response_model=TransactionResponse)
def upload_receipt(transaction_id: str, request_body: ReceiptUpload, db: Session = Depends(get_db)):
    txn = TransactionService(db).attach_receipt(transaction_id, request_body.receipt_url)
    return TransactionResponse.model_validate(txn)
