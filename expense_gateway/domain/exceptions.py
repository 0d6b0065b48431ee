"""Domain-specific exceptions"""

from typing import List, Optional


class DomainException(Exception):
    """Base exception for domain layer"""

    code = "domain_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(DomainException):
    """Input is malformed or out of range"""

    code = "validation_error"


class NotFoundError(DomainException):
    """Referenced card, invoice, approval or transaction does not exist"""

    code = "not_found"

    def __init__(self, entity: str, entity_id: str):
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class ConflictError(DomainException):
    """Business rule rejected the operation before any mutation"""

    code = "conflict"

    def __init__(self, message: str, blocked_fields: Optional[List[str]] = None):
        super().__init__(message)
        self.blocked_fields = blocked_fields or []


class InvalidTransitionError(ConflictError):
    """Card status change not allowed from the current status"""

    code = "invalid_transition"

    def __init__(self, from_status: str, to_status: str):
        super().__init__(f"Cannot transition card from {from_status} to {to_status}")
        self.from_status = from_status
        self.to_status = to_status


class InsufficientFundsError(DomainException):
    """Wallet balance cannot cover a debit"""

    code = "insufficient_funds"

    def __init__(self, required_cents: int, available_cents: int):
        super().__init__(
            f"Insufficient wallet funds: required {required_cents} cents, available {available_cents} cents"
        )
        self.required_cents = required_cents
        self.available_cents = available_cents


class PersistenceError(DomainException):
    """Underlying store failed or is unavailable"""

    code = "persistence_error"


class ErpSyncError(DomainException):
    """ERP endpoint rejected the sync or is unavailable"""

    code = "erp_unavailable"
