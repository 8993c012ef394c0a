"""
Pipeline errors — returned as values, never raised across the pipeline boundary.

    match await carts.add_line(key, product_id=7, quantity=2):
        case Ok(cart):
            ...
        case Error(err) if err.kind is ErrorKind.NOT_FOUND:
            ...  # "item no longer available"
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import ValidationError

# ═══════════════════════════════════════════════════════════════════════════════
# Error Kind
# ═══════════════════════════════════════════════════════════════════════════════


class ErrorKind(Enum):
    """
    Kinds of pipeline errors.

    Callers branch on kind, not on message text.
    """

    VALIDATION = "validation"  # Bad input shape/range
    NOT_FOUND = "not_found"  # Unknown product/variant/cart/order
    INVALID_TRANSITION = "invalid_transition"  # Illegal status change
    CONFLICT = "conflict"  # State moved underneath a conditional write
    INSUFFICIENT_STOCK = "insufficient_stock"  # Checkout against stale stock
    PAYMENT = "payment"  # Payment collaborator failed
    STORE = "store"  # Storage backend failure


# ═══════════════════════════════════════════════════════════════════════════════
# Error Types
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class FieldError:
    """Field-level validation detail. path is dotted (`shipping_address.city`)."""

    path: str
    message: str


@dataclass(frozen=True, slots=True)
class StoreError:
    """Storage operation error."""

    message: str
    cause: Exception | None = None


@dataclass(frozen=True, slots=True)
class PipelineError:
    """
    Error returned by every pipeline operation.

    details: optional payload for the caller, e.g. the validation report
    when checkout is refused because of stock problems.
    """

    kind: ErrorKind
    message: str
    fields: tuple[FieldError, ...] = ()
    details: Any = field(default=None, compare=False)

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.message}"


# ═══════════════════════════════════════════════════════════════════════════════
# Constructors
# ═══════════════════════════════════════════════════════════════════════════════


class Errors:
    @staticmethod
    def validation(msg: str, *fields: FieldError, details: Any = None) -> PipelineError:
        return PipelineError(ErrorKind.VALIDATION, msg, fields, details)

    @staticmethod
    def not_found(entity: str, ident: object) -> PipelineError:
        return PipelineError(ErrorKind.NOT_FOUND, f"{entity} {ident} not found")

    @staticmethod
    def invalid_transition(machine: str, current: str, target: str) -> PipelineError:
        return PipelineError(
            ErrorKind.INVALID_TRANSITION,
            f"Cannot move {machine} from {current} to {target}",
        )

    @staticmethod
    def conflict(msg: str) -> PipelineError:
        return PipelineError(ErrorKind.CONFLICT, msg)

    @staticmethod
    def insufficient_stock(msg: str, details: Any = None) -> PipelineError:
        return PipelineError(ErrorKind.INSUFFICIENT_STOCK, msg, details=details)

    @staticmethod
    def payment(msg: str) -> PipelineError:
        return PipelineError(ErrorKind.PAYMENT, msg)


def from_validation(exc: ValidationError) -> PipelineError:
    """Convert a pydantic ValidationError into field-level details."""
    fields = tuple(
        FieldError(
            path=".".join(str(part) for part in err["loc"]),
            message=err["msg"],
        )
        for err in exc.errors()
    )
    return PipelineError(ErrorKind.VALIDATION, "Invalid input", fields)


def from_store(err: StoreError) -> PipelineError:
    """Surface a storage failure as a generic pipeline failure."""
    return PipelineError(ErrorKind.STORE, err.message, details=err.cause)


__all__ = (
    "ErrorKind",
    "FieldError",
    "StoreError",
    "PipelineError",
    "Errors",
    "from_validation",
    "from_store",
)
