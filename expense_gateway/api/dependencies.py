"""Dependency injection for FastAPI endpoints"""

from fastapi import Request
from expense_gateway.infrastructure.clients.erp import ErpClient


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_erp_client() -> ErpClient:
    """Provide ERP sync client instance"""
    return ErpClient()
