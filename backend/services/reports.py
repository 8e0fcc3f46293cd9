from __future__ import annotations

from datetime import date, datetime, time, timedelta
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from backend.app.db.models.models_v1 import Sale
from backend.services.actor import Actor
from backend.services.errors import ReportAccessDenied

EMPTY_TOTALS = {
    "total_transactions": 0,
    "total_tonnage_kg": Decimal("0"),
    "total_cash_collected": Decimal("0"),
    "total_credit_due": Decimal("0"),
    "total_expected_revenue": Decimal("0"),
}


def _totals_columns():
    return (
        func.count(Sale.id).label("total_transactions"),
        func.coalesce(func.sum(Sale.tonnage), 0).label("total_tonnage_kg"),
        func.coalesce(func.sum(func.coalesce(Sale.amount_paid, 0)), 0).label("total_cash_collected"),
        func.coalesce(func.sum(func.coalesce(Sale.amount_due, 0)), 0).label("total_credit_due"),
        func.coalesce(func.sum(Sale.total_expected), 0).label("total_expected_revenue"),
    )


def _as_totals(row) -> dict:
    return {
        "total_transactions": int(row.total_transactions or 0),
        "total_tonnage_kg": Decimal(str(row.total_tonnage_kg or 0)),
        "total_cash_collected": Decimal(str(row.total_cash_collected or 0)),
        "total_credit_due": Decimal(str(row.total_credit_due or 0)),
        "total_expected_revenue": Decimal(str(row.total_expected_revenue or 0)),
    }


def sales_totals(
    db: Session,
    actor: Actor,
    *,
    start_date: date | None = None,
    end_date: date | None = None,
) -> dict:
    """
    Totaux des ventes (Director uniquement).

    Règle :
        période = [start_date 00:00, end_date 23:59:59.999999] sur created_at
        totaux globaux + totaux par branche (tri par branche)
    """
    if not actor.is_director:
        raise ReportAccessDenied("Only the director can view this report")

    conditions = []
    if start_date is not None:
        conditions.append(Sale.created_at >= datetime.combine(start_date, time.min))
    if end_date is not None:
        conditions.append(Sale.created_at < datetime.combine(end_date + timedelta(days=1), time.min))

    grand_stmt = select(*_totals_columns())
    branch_stmt = select(Sale.branch, *_totals_columns()).group_by(Sale.branch).order_by(Sale.branch)
    for cond in conditions:
        grand_stmt = grand_stmt.where(cond)
        branch_stmt = branch_stmt.where(cond)

    grand = db.execute(grand_stmt).one()
    branch_rows = db.execute(branch_stmt).all()

    return {
        "period": {"start_date": start_date, "end_date": end_date},
        "grand_totals": _as_totals(grand) if grand.total_transactions else dict(EMPTY_TOTALS),
        "branch_totals": [{"branch": r.branch, **_as_totals(r)} for r in branch_rows],
    }
