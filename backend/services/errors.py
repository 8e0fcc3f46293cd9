"""
Erreurs typées du moteur de stock.

Chaque erreur porte :
- un `code` stable (lisible machine, exposé par l'API)
- un `status_code` HTTP (utilisé par le handler FastAPI)
- un `context` structuré (clé, quantités, montant attendu...) pour que
  l'appelant puisse corriger sa requête.

Les reconcilers attrapent ce qui doit l'être, compensent, puis relèvent
UNE seule erreur typée.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any


def _plain(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, tuple) and hasattr(value, "_asdict"):
        return {k: _plain(v) for k, v in value._asdict().items()}
    return value


class StockError(Exception):
    code = "STOCK_ERROR"
    status_code = 400

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context
        self.compensation_failures: list[str] = []

    def to_dict(self) -> dict[str, Any]:
        body = {"code": self.code, "message": self.message}
        body.update({k: _plain(v) for k, v in self.context.items()})
        if self.compensation_failures:
            body["compensation_failures"] = list(self.compensation_failures)
        return body


# ---------- LEDGER ----------
class InsufficientStock(StockError):
    code = "INSUFFICIENT_STOCK"
    status_code = 409

    def __init__(self, key, required: Decimal, available: Decimal, message: str | None = None) -> None:
        super().__init__(
            message or f"Insufficient stock (required={required}, available={available})",
            key=key,
            required=required,
            available=available,
        )


class LedgerKeyNotFound(StockError):
    code = "LEDGER_KEY_NOT_FOUND"
    status_code = 404

    def __init__(self, key, message: str | None = None, **context: Any) -> None:
        super().__init__(message or "Inventory record not found", key=key, **context)


class AmbiguousProduceType(StockError):
    code = "AMBIGUOUS_PRODUCE_TYPE"
    status_code = 400

    def __init__(self, produce_name: str, branch: str, produce_types: list[str]) -> None:
        super().__init__(
            "Multiple produce types found. Provide produce_type",
            produce_name=produce_name,
            branch=branch,
            produce_types=produce_types,
        )


# ---------- SALES ----------
class PriceMismatch(StockError):
    code = "PRICE_MISMATCH"
    status_code = 400

    def __init__(self, field: str, declared: Decimal, expected: Decimal) -> None:
        super().__init__(
            f"{field} must match manager-set selling price",
            field=field,
            declared_amount=declared,
            expected_amount=expected,
        )


class BelowMinimumTransactionValue(StockError):
    code = "BELOW_MINIMUM_TRANSACTION_VALUE"
    status_code = 400

    def __init__(self, total: Decimal, minimum: Decimal) -> None:
        super().__init__(
            f"Computed amount is below the minimum allowed value of {minimum}",
            computed_amount=total,
            minimum=minimum,
        )


class SaleTypeImmutable(StockError):
    code = "SALE_TYPE_IMMUTABLE"
    status_code = 400

    def __init__(self, current, requested) -> None:
        super().__init__("sale_type cannot be changed", current=str(current.value), requested=str(requested.value))


# ---------- PROCUREMENT ----------
class ProcurementSourceRuleViolation(StockError):
    code = "PROCUREMENT_SOURCE_RULE"
    status_code = 400


# ---------- ROSTER ----------
class StaffingFloorViolation(StockError):
    code = "STAFFING_FLOOR_VIOLATION"
    status_code = 409

    def __init__(self, message: str, *, branch: str, role, count: int, floor: int) -> None:
        super().__init__(message, branch=branch, role=role.value, count=count, floor=floor)


class RosterConflict(StockError):
    code = "ROSTER_CONFLICT"
    status_code = 409


class DuplicateRosterSlot(RosterConflict):
    code = "DUPLICATE_ROSTER_SLOT"


# ---------- GENERIC ----------
class InvalidRequest(StockError):
    code = "INVALID_REQUEST"
    status_code = 400


class UnknownBranch(StockError):
    code = "UNKNOWN_BRANCH"
    status_code = 400

    def __init__(self, branch: str, allowed: list[str]) -> None:
        super().__init__(f"Unknown branch {branch!r}", branch=branch, allowed=list(allowed))


class RecordNotFound(StockError):
    code = "NOT_FOUND"
    status_code = 404


class BranchAccessDenied(StockError):
    code = "ACCESS_DENIED"
    status_code = 403


class ReportAccessDenied(BranchAccessDenied):
    code = "REPORT_ACCESS_DENIED"


class PersistenceFailure(StockError):
    code = "PERSISTENCE_FAILURE"
    status_code = 500
