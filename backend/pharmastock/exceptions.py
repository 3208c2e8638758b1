"""
Error taxonomy for inventory movements.

Services raise these; routes translate them to HTTP responses via
``status_code``. Every error raised inside an atomic scope has already
rolled the session back by the time the caller sees it.

    ValidationError         400  malformed/missing field, bad quantity/price/expiry
    NotFoundError           404  medication missing or owned by another pharmacy
    InsufficientStockError  400  removal exceeds on-hand (carries available qty)
    ConflictError           409  concurrent movement won every retry
    PersistenceError        503  storage unavailable or failed mid-scope
"""

from __future__ import annotations


class ValidationError(ValueError):
    """400-level input problem."""

    status_code = 400

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field

    def to_dict(self) -> dict:
        body = {"error": str(self)}
        if self.field:
            body["field"] = self.field
        return body


class NotFoundError(LookupError):
    """404-level: referenced entity does not exist for this tenant."""

    status_code = 404

    def to_dict(self) -> dict:
        return {"error": str(self)}


class InsufficientStockError(ValueError):
    """Business rejection: the movement would take on-hand below zero."""

    status_code = 400

    def __init__(self, available: int, requested: int, unit: str | None = None):
        self.available = available
        self.requested = requested
        self.unit = unit
        unit_label = f"{unit}(s)" if unit else "units"
        super().__init__(f"Insufficient stock. Only {available} {unit_label} available")

    def to_dict(self) -> dict:
        return {
            "error": str(self),
            "available": self.available,
            "requested": self.requested,
        }


class ConflictError(RuntimeError):
    """409-level: the atomic scope could not serialize against a competing movement."""

    status_code = 409

    def to_dict(self) -> dict:
        return {"error": str(self)}


class PersistenceError(RuntimeError):
    """503-level: storage failed; nothing from the scope was written."""

    status_code = 503

    def to_dict(self) -> dict:
        return {"error": str(self)}


class ImmutableRecordError(RuntimeError):
    """Raised when code attempts to modify or delete an inventory movement."""


INVENTORY_ERRORS = (
    ValidationError,
    NotFoundError,
    InsufficientStockError,
    ConflictError,
    PersistenceError,
)
