# Overview: Competency-month locks and the month-closure snapshot.

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, ValidationError
from ..extensions import db
from ..models import FinancialClosure, FinancialMovement, Order, Product
from ..schemas import parse_month
from ..time_utils import add_months, month_key, utcnow
from . import ledger_service
from .concurrency import run_in_transaction

logger = logging.getLogger(__name__)


def current_month() -> str:
    """Competency month of 'now' (UTC)."""
    return month_key(utcnow())


def competency_month(dt: datetime) -> str:
    return month_key(dt)


def is_month_closed(month: str) -> bool:
    return db.session.get(FinancialClosure, month) is not None


def assert_month_open(month: str) -> None:
    """
    Raise ConflictError when `month` has a closure.

    Call inside the transaction that performs the guarded mutation so
    a concurrent close cannot slip in between check and write.
    """
    if is_month_closed(month):
        raise ConflictError(f"Financial month {month} is closed", details={"month": month})


def _month_end(month: str) -> datetime:
    year, mon = int(month[:4]), int(month[5:])
    first_of_next = add_months(datetime(year, mon, 1).date(), 1)
    return datetime(first_of_next.year, first_of_next.month, 1)


def compute_snapshot(month: str) -> dict:
    """
    Aggregate the month's ledger plus point-in-time balances.

    Revenue, COGS and expenses come from movement types; cash in/out
    from directions. Inventory value is current stock at cost; fiado
    outstanding is the remaining amount of deferred orders created up to
    the end of the month.
    """
    rows = (
        db.session.query(
            FinancialMovement.type,
            FinancialMovement.direction,
            func.coalesce(func.sum(FinancialMovement.amount_cents), 0),
        )
        .filter(FinancialMovement.competency_month == month)
        .group_by(FinancialMovement.type, FinancialMovement.direction)
        .all()
    )

    revenue = cogs = expenses = cash_in = cash_out = 0
    for movement_type, direction, amount in rows:
        amount = int(amount or 0)
        if movement_type == "SALE_REVENUE":
            revenue += amount
        elif movement_type == "COGS":
            cogs += amount
        elif movement_type == "OPERATING_EXPENSE":
            expenses += amount
        if direction == "IN":
            cash_in += amount
        elif direction == "OUT":
            cash_out += amount

    inventory_value = db.session.query(
        func.coalesce(func.sum(Product.stock * Product.cost_cents), 0)
    ).scalar()

    fiado_outstanding = db.session.query(
        func.coalesce(func.sum(Order.remaining_cents), 0)
    ).filter(
        Order.is_paid_later.is_(True),
        Order.created_at < _month_end(month),
    ).scalar()

    gross_profit = revenue - cogs
    return {
        "revenue_cents": revenue,
        "cogs_cents": cogs,
        "gross_profit_cents": gross_profit,
        "expenses_cents": expenses,
        "net_result_cents": gross_profit - expenses,
        "cash_in_cents": cash_in,
        "cash_out_cents": cash_out,
        "inventory_value_cents": int(inventory_value or 0),
        "fiado_outstanding_cents": int(fiado_outstanding or 0),
    }


def close_month(month: str, actor) -> FinancialClosure:
    """
    Lock a past competency month and store its snapshot.

    Raises:
        ValidationError: malformed month, current or future month
        ConflictError: month already closed
    """
    month = parse_month(month)
    if month >= current_month():
        raise ValidationError("Only past months can be closed")

    def _op():
        if is_month_closed(month):
            raise ConflictError(f"Month {month} is already closed")

        snapshot = compute_snapshot(month)
        closure = FinancialClosure(
            month=month,
            locked_at=utcnow(),
            locked_by_user_id=actor.id,
            **snapshot,
        )
        db.session.add(closure)
        ledger_service.append_audit_log(
            action="FINANCIAL_CLOSE",
            actor=actor,
            competency_month=month,
            related_kind="financial_closure",
            related_id=month,
            payload=snapshot,
        )
        return closure

    try:
        closure = run_in_transaction(_op)
    except IntegrityError:
        raise ConflictError(f"Month {month} is already closed")
    logger.info("Closed financial month %s by user %s", month, actor.id)
    return closure


def list_closures() -> list[FinancialClosure]:
    return db.session.query(FinancialClosure).order_by(FinancialClosure.month.desc()).all()
