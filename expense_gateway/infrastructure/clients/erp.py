"""ERP sync client with exponential backoff retry logic"""

import httpx
import asyncio
from typing import Dict, Any
from expense_gateway.config import settings
from expense_gateway.domain.exceptions import ErpSyncError
from expense_gateway.infrastructure.observability.metrics import erp_sync_latency_histogram, erp_sync_failure_counter


class ErpClient:
    """Client for pushing coded transactions to the ERP"""

    def __init__(self, sync_url: str | None = None):
        self.sync_url = sync_url or settings.erp_sync_url
        self.timeout = settings.http_timeout_seconds
        self.max_retries = settings.erp_sync_max_retries
        self.backoff_base = settings.erp_sync_backoff_base

    async def push_transactions(self, payload: Dict[str, Any]) -> None:
        """
        Send a batch of Ready to Sync transactions to the ERP with retry logic.

        Retry strategy:
        - Exponential backoff: 1s, 2s, 4s, 8s (base * 2^(attempt-1))
        - Retries on 5xx errors and network failures, 4xx fails immediately
        - Tracks latency histogram and failure counter

        Raises:
            ErpSyncError: When the ERP rejects the batch or every attempt fails
        """
        attempt = 0
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            while attempt < self.max_retries:
                try:
                    with erp_sync_latency_histogram.time():
                        response = await client.post(self.sync_url, json=payload)
                        response.raise_for_status()
                        return  # Success

                except httpx.HTTPStatusError as e:
                    attempt += 1
                    erp_sync_failure_counter.inc()
                    if e.response.status_code < 500:
                        raise ErpSyncError(f"ERP rejected sync: {e.response.status_code}") from e
                    if attempt >= self.max_retries:
                        raise ErpSyncError(f"ERP error after {attempt} attempts: {e.response.status_code}") from e

                except httpx.RequestError as e:
                    attempt += 1
                    erp_sync_failure_counter.inc()
                    if attempt >= self.max_retries:
                        raise ErpSyncError(f"ERP unreachable after {attempt} attempts") from e

                backoff = self.backoff_base * (2 ** (attempt - 1))
                await asyncio.sleep(backoff)
