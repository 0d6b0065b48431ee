"""FastAPI application factory"""

import logging
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from expense_gateway.api.middleware import RequestIDMiddleware, MetricsMiddleware
from expense_gateway.api.v1 import (
    approvals,
    cards,
    invoices,
    payments,
    reference,
    reports,
    simulate,
    transactions,
    wallet,
)
from expense_gateway.domain.exceptions import (
    ConflictError,
    DomainException,
    ErpSyncError,
    InsufficientFundsError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from expense_gateway.infrastructure.observability.logging import setup_logging
from expense_gateway.config import settings

# Setup structured logging
setup_logging(settings.log_level)

logger = logging.getLogger(__name__)

# Most specific first; anything else in the hierarchy is a 400
STATUS_BY_EXCEPTION = [
    (NotFoundError, 404),
    (ErpSyncError, 503),
    (PersistenceError, 500),
    (ConflictError, 400),
    (InsufficientFundsError, 400),
    (ValidationError, 400),
]


def status_for(exc: DomainException) -> int:
    for exc_type, status_code in STATUS_BY_EXCEPTION:
        if isinstance(exc, exc_type):
            return status_code
    return 400


async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
    """Render domain errors as {"detail", "code"} with an HTTP status per error type"""
    status_code = status_for(exc)
    body = {"detail": exc.message, "code": exc.code}
    if isinstance(exc, ConflictError) and exc.blocked_fields:
        body["blocked_fields"] = exc.blocked_fields

    log = logger.error if status_code >= 500 else logger.info
    log(
        "Request failed",
        extra={
            "request_id": getattr(request.state, "request_id", "unknown"),
            "path": request.url.path,
            "status": status_code,
            "code": exc.code,
        },
    )
    return JSONResponse(status_code=status_code, content=body)


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Expense Gateway",
        description="Virtual cards, transaction authorization and invoice payments",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    app.add_exception_handler(DomainException, domain_exception_handler)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(cards.router, prefix="/v1", tags=["cards"])
    app.include_router(approvals.router, prefix="/v1", tags=["approvals"])
    app.include_router(invoices.router, prefix="/v1", tags=["invoices"])
    app.include_router(payments.router, prefix="/v1", tags=["payments"])
    app.include_router(transactions.router, prefix="/v1", tags=["transactions"])
    app.include_router(wallet.router, prefix="/v1", tags=["wallet"])
    app.include_router(simulate.router, prefix="/v1", tags=["simulate"])
    app.include_router(reference.router, prefix="/v1", tags=["reference"])
    app.include_router(reports.router, prefix="/v1", tags=["reports"])

    return app


app = create_app()
