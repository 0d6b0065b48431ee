"""Integration tests for transaction coding and ERP sync"""

import httpx
import pytest
from unittest.mock import AsyncMock, patch
from expense_gateway.domain.exceptions import ConflictError, ErpSyncError, ValidationError
from expense_gateway.infrastructure.clients.erp import ErpClient
from expense_gateway.services.authorizer import TransactionAuthorizer
from expense_gateway.services.transactions import TransactionService

ERP_URL = "http://erp.test/mock-erp/transactions"


@pytest.fixture
def coded_transaction(db, fund_wallet, make_card):
    """Approved charge on a card with full coding templates"""
    fund_wallet(100000)
    card = make_card(gl_account_template="6200", department_template="Technology", cost_center_template="CC-002")
    return TransactionAuthorizer(db).authorize(card.id, 4999, merchant="GitHub").transaction


@pytest.fixture
def uncoded_transaction(db, fund_wallet, make_card):
    fund_wallet(100000)
    card = make_card()
    return TransactionAuthorizer(db).authorize(card.id, 1500, merchant="Uber").transaction


def response(status_code: int) -> httpx.Response:
    return httpx.Response(status_code, request=httpx.Request("POST", ERP_URL))


def test_receipt_makes_coded_transaction_ready(db, coded_transaction):
    txn = TransactionService(db).attach_receipt(coded_transaction.id, "https://receipts.example.com/gh.pdf")
    assert txn.status == "Ready to Sync"


def test_coding_after_receipt(db, uncoded_transaction):
    service = TransactionService(db)

    txn = service.attach_receipt(uncoded_transaction.id, "https://receipts.example.com/uber.pdf")
    assert txn.status == "Pending Coding"

    txn = service.update_coding(txn.id, {"gl_account": "7200", "department": "Sales", "cost_center": "CC-001"})
    assert txn.status == "Ready to Sync"


def test_coding_rejects_non_coding_fields(db, uncoded_transaction):
    with pytest.raises(ValidationError):
        TransactionService(db).update_coding(uncoded_transaction.id, {"amount_cents": 1})


@pytest.mark.asyncio
async def test_sync_marks_ready_transactions(db, coded_transaction, uncoded_transaction):
    service = TransactionService(db)
    service.attach_receipt(coded_transaction.id, "https://receipts.example.com/gh.pdf")
    erp_client = AsyncMock(spec=ErpClient)

    synced = await service.sync_to_erp(erp_client)

    assert [t.id for t in synced] == [coded_transaction.id]
    payload = erp_client.push_transactions.call_args.args[0]
    assert payload["transactions"][0]["gl_account"] == "6200"
    assert payload["transactions"][0]["amount_cents"] == 4999
    assert service.get_transaction(coded_transaction.id).status == "Synced"
    assert service.get_transaction(uncoded_transaction.id).synced_at is None


@pytest.mark.asyncio
async def test_sync_failure_marks_nothing(db, coded_transaction):
    service = TransactionService(db)
    service.attach_receipt(coded_transaction.id, "https://receipts.example.com/gh.pdf")
    erp_client = AsyncMock(spec=ErpClient)
    erp_client.push_transactions.side_effect = ErpSyncError("ERP unreachable after 5 attempts")

    with pytest.raises(ErpSyncError):
        await service.sync_to_erp(erp_client)

    txn = service.get_transaction(coded_transaction.id)
    assert txn.status == "Ready to Sync"
    assert txn.synced_at is None


@pytest.mark.asyncio
async def test_sync_selected_ids_must_be_ready(db, uncoded_transaction):
    with pytest.raises(ConflictError):
        await TransactionService(db).sync_to_erp(AsyncMock(spec=ErpClient), [uncoded_transaction.id])


@pytest.mark.asyncio
async def test_synced_transaction_is_frozen(db, coded_transaction):
    service = TransactionService(db)
    service.attach_receipt(coded_transaction.id, "https://receipts.example.com/gh.pdf")
    await service.sync_to_erp(AsyncMock(spec=ErpClient))

    with pytest.raises(ConflictError):
        service.update_coding(coded_transaction.id, {"memo": "late note"})


@pytest.mark.asyncio
async def test_client_retries_server_errors():
    client = ErpClient(sync_url=ERP_URL)
    client.max_retries = 3
    client.backoff_base = 0

    with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as mock_post:
        mock_post.return_value = response(503)
        with pytest.raises(ErpSyncError):
            await client.push_transactions({"transactions": []})

    assert mock_post.call_count == 3


@pytest.mark.asyncio
async def test_client_does_not_retry_client_errors():
    client = ErpClient(sync_url=ERP_URL)
    client.backoff_base = 0

    with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as mock_post:
        mock_post.return_value = response(422)
        with pytest.raises(ErpSyncError):
            await client.push_transactions({"transactions": []})

    assert mock_post.call_count == 1


@pytest.mark.asyncio
async def test_client_recovers_after_network_error():
    client = ErpClient(sync_url=ERP_URL)
    client.backoff_base = 0

    with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as mock_post:
        mock_post.side_effect = [httpx.ConnectError("connection refused"), response(200)]
        await client.push_transactions({"transactions": []})

    assert mock_post.call_count == 2
