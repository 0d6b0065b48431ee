"""Structured JSON logging for production observability"""

import logging
import sys
from typing import Any, Dict, Optional
from pythonjsonlogger import jsonlogger

from expense_gateway.config import settings
from expense_gateway.utils.date_utils import utcnow


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = utcnow().isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    # JSON handler for stdout
    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_authorization(
    request_id: Optional[str],
    card_id: str,
    amount_cents: int,
    approved: bool,
    decline_code: Optional[str],
    duration_ms: float,
) -> None:
    """Log structured authorization outcome for analysis"""
    logging.info(
        "Authorization completed",
        extra={
            "request_id": request_id,
            "card_id": card_id,
            "step": "authorization_complete",
            "authorization_outcome": "approved" if approved else "declined",
            "decline_code": decline_code,
            "amount_cents": amount_cents,
            "duration_ms": duration_ms,
        },
    )


def log_payment(
    request_id: Optional[str],
    invoice_id: str,
    method: str,
    outcome: str,
    amount_cents: int,
) -> None:
    """Log structured invoice payment attempt"""
    logging.info(
        "Invoice payment attempted",
        extra={
            "request_id": request_id,
            "invoice_id": invoice_id,
            "step": "invoice_payment",
            "payment_method": method,
            "payment_outcome": outcome,
            "amount_cents": amount_cents,
        },
    )
