"""
Inventory Ledger Exception Hierarchy

Structured exception classes for the stock ledger. All exceptions include
code, message, and details so callers can act on them programmatically and
the audit trail records why an adjustment was refused.

Exception Hierarchy:
    LedgerError
    ├── ProductNotFound
    │   └── VariantNotFound
    ├── LedgerValidationError
    │   ├── InvalidDelta
    │   ├── InvalidMovementType
    │   ├── InvalidPage
    │   └── StockOutOfRange
    ├── InsufficientStock
    ├── ConcurrencyConflict
    ├── IdempotencyKeyMismatch
    └── ImmutableMovementError
"""
from typing import Any, Dict, Optional


class LedgerError(Exception):
    """
    Root of every error the ledger raises on purpose.

    ``code`` is the stable identifier returned to API callers, ``details``
    carries the ids and amounts involved, and ``severity`` (P0 worst, P3
    routine) drives how loudly it is logged. ``retryable`` marks errors a
    caller may simply try again.
    """

    default_code: str = "LEDGER_ERROR"
    default_severity: str = "P2"
    retryable: bool = False

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[str] = None,
    ):
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}
        self.severity = severity or self.default_severity
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Payload for structured logs."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "severity": self.severity,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"


# =============================================================================
# LOOKUP ERRORS
# =============================================================================

class ProductNotFound(LedgerError):
    """Adjustment or query referenced an unknown product."""
    default_code = "PRODUCT_NOT_FOUND"
    default_severity = "P3"

    def __init__(self, product_id: str, **kwargs):
        details = kwargs.pop("details", {})
        details["product_id"] = product_id
        super().__init__(f"Product {product_id} not found", details=details, **kwargs)


class VariantNotFound(ProductNotFound):
    """Variant is unknown or belongs to a different product."""
    default_code = "VARIANT_NOT_FOUND"

    def __init__(self, product_id: str, variant_id: str, **kwargs):
        details = kwargs.pop("details", {})
        details["variant_id"] = variant_id
        super().__init__(product_id, details=details, **kwargs)
        self.message = f"Variant {variant_id} not found for product {product_id}"
        self.args = (self.message,)


# =============================================================================
# VALIDATION ERRORS
# =============================================================================

class LedgerValidationError(LedgerError):
    """Request was malformed before any state was read."""
    default_code = "LEDGER_VALIDATION_FAILED"
    default_severity = "P3"


class InvalidDelta(LedgerValidationError):
    """Delta is zero, not an integer, or wider than the stock columns."""
    default_code = "INVALID_DELTA"

    def __init__(self, delta: Any, **kwargs):
        details = kwargs.pop("details", {})
        details["delta"] = repr(delta)
        super().__init__(
            f"Stock change must be a non-zero integer that fits the stock columns (got {delta!r})",
            details=details,
            **kwargs
        )


class InvalidMovementType(LedgerValidationError):
    """Movement type is not one of the ledger's kinds."""
    default_code = "INVALID_MOVEMENT_TYPE"

    def __init__(self, movement_type: Any, allowed: Optional[list] = None, **kwargs):
        details = kwargs.pop("details", {})
        details.update({
            "movement_type": repr(movement_type),
            "allowed": allowed or [],
        })
        super().__init__(f"Unknown movement type {movement_type!r}", details=details, **kwargs)


class InvalidPage(LedgerValidationError):
    """Pagination arguments out of range."""
    default_code = "INVALID_PAGE"

    def __init__(self, page: int, page_size: int, max_page_size: int, **kwargs):
        details = kwargs.pop("details", {})
        details.update({
            "page": page,
            "page_size": page_size,
            "max_page_size": max_page_size,
        })
        super().__init__(
            f"page must be >= 1 and page_size between 1 and {max_page_size}",
            details=details,
            **kwargs
        )


class StockOutOfRange(LedgerValidationError):
    """Resulting stock would not fit the stock columns."""
    default_code = "STOCK_OUT_OF_RANGE"

    def __init__(
        self,
        product_id: str,
        current_stock: int,
        delta: int,
        minimum: int,
        maximum: int,
        variant_id: Optional[str] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        details.update({
            "product_id": product_id,
            "variant_id": variant_id,
            "current_stock": current_stock,
            "delta": delta,
            "minimum": minimum,
            "maximum": maximum,
        })
        super().__init__(
            f"Stock of {current_stock} changed by {delta:+d} falls outside {minimum}..{maximum}",
            details=details,
            **kwargs
        )


# =============================================================================
# ADJUSTMENT ERRORS
# =============================================================================

class InsufficientStock(LedgerError):
    """Non-correction adjustment would take stock below zero."""
    default_code = "INSUFFICIENT_STOCK"
    default_severity = "P3"

    def __init__(
        self,
        product_id: str,
        current_stock: int,
        delta: int,
        variant_id: Optional[str] = None,
        **kwargs
    ):
        self.current_stock = current_stock
        self.delta = delta
        self.candidate = current_stock + delta
        details = kwargs.pop("details", {})
        details.update({
            "product_id": product_id,
            "variant_id": variant_id,
            "current_stock": current_stock,
            "delta": delta,
            "candidate_stock": self.candidate,
        })
        super().__init__(
            f"Cannot reduce stock below 0 (current: {current_stock}, adjustment: {delta:+d}). "
            f"Use a smaller adjustment or record a correction.",
            details=details,
            **kwargs
        )


class ConcurrencyConflict(LedgerError):
    """Serialization retry budget exhausted or ledger lock wait timed out."""
    default_code = "CONCURRENCY_CONFLICT"
    default_severity = "P2"
    retryable = True

    def __init__(
        self,
        product_id: str,
        attempts: int,
        variant_id: Optional[str] = None,
        reason: Optional[str] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        details.update({
            "product_id": product_id,
            "variant_id": variant_id,
            "attempts": attempts,
            "reason": reason,
        })
        super().__init__(
            f"Stock for product {product_id} changed concurrently; "
            f"gave up after {attempts} attempt(s). Re-read stock and retry.",
            details=details,
            **kwargs
        )


class IdempotencyKeyMismatch(LedgerError):
    """Idempotency key replayed with a different adjustment."""
    default_code = "IDEMPOTENCY_KEY_MISMATCH"
    default_severity = "P2"

    def __init__(self, idempotency_key: str, existing_movement_id: str, **kwargs):
        details = kwargs.pop("details", {})
        details.update({
            "idempotency_key": idempotency_key,
            "existing_movement_id": existing_movement_id,
        })
        super().__init__(
            f"Idempotency key {idempotency_key!r} was already used for a different adjustment",
            details=details,
            **kwargs
        )


class ImmutableMovementError(LedgerError):
    """Attempt to update or delete a recorded stock movement."""
    default_code = "MOVEMENT_IMMUTABLE"
    default_severity = "P0"

    def __init__(self, movement_id: Any, operation: str, **kwargs):
        details = kwargs.pop("details", {})
        details.update({
            "movement_id": str(movement_id),
            "operation": operation,
        })
        super().__init__(
            f"Stock movement {movement_id} is immutable ({operation} refused). "
            f"Record a correction instead.",
            details=details,
            **kwargs
        )
