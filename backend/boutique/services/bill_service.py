# Overview: Bills payable and their expense entries in the financial ledger.

"""
Bill manager.

LIFECYCLE: PENDING -> PAID -> (PENDING | deleted)

- mark_paid books an OPERATING_EXPENSE movement in the current month and
  is a no-op for a bill that is already paid
- mark_unpaid / delete of a paid bill are refused when the month the bill
  was paid in is closed; otherwise an ADJUSTMENT IN movement reverses the
  expense in the current month
- every closure check runs inside the transaction that mutates the bill
"""

from __future__ import annotations

import logging
import uuid
from datetime import date

from ..errors import NotFoundError
from ..extensions import db
from ..models import Bill
from ..schemas import (
    LEDGER_METHODS,
    BillCreateRequest,
    FixedBillRequest,
    InstallmentBillRequest,
    OneTimeBillRequest,
)
from ..time_utils import add_months, utcnow
from . import ledger_service
from .closure_service import assert_month_open, competency_month, current_month
from .concurrency import lock_for_update, run_in_transaction

logger = logging.getLogger(__name__)


# =============================================================================
# CREATION
# =============================================================================

def _fixed_bills(req: FixedBillRequest) -> list[Bill]:
    today = utcnow().date()
    start = req.start_month or date(today.year, today.month, 1)
    group_id = str(uuid.uuid4())
    return [
        Bill(
            name=req.name,
            amount_cents=req.amount_cents,
            due_date=add_months(start, i, day=req.day_of_month),
            status="PENDING",
            kind="FIXED",
            group_id=group_id,
        )
        for i in range(req.months_ahead)
    ]


def _one_time_bill(req: OneTimeBillRequest) -> list[Bill]:
    return [Bill(
        name=req.name,
        amount_cents=req.amount_cents,
        due_date=req.due_date,
        status="PENDING",
        kind="ONE_TIME",
    )]


def _installment_bills(req: InstallmentBillRequest) -> list[Bill]:
    group_id = str(uuid.uuid4())
    return [
        Bill(
            name=req.name,
            amount_cents=req.amount_cents,
            due_date=add_months(req.first_due_date, i * req.interval_months),
            status="PENDING",
            kind="INSTALLMENT",
            group_id=group_id,
            installment_number=i + 1,
            installment_count=req.installments_count,
        )
        for i in range(req.installments_count)
    ]


def create_bills(req: BillCreateRequest) -> list[Bill]:
    if isinstance(req, FixedBillRequest):
        bills = _fixed_bills(req)
    elif isinstance(req, InstallmentBillRequest):
        bills = _installment_bills(req)
    else:
        bills = _one_time_bill(req)

    db.session.add_all(bills)
    db.session.commit()
    logger.info("Created %s bill(s) '%s'", len(bills), req.name)
    return bills


def list_bills(month: str | None = None, status: str | None = None) -> list[Bill]:
    """Bills ordered by due date, optionally limited to a due month and status."""
    query = db.session.query(Bill)
    if month:
        year, mon = int(month[:4]), int(month[5:])
        start = date(year, mon, 1)
        query = query.filter(Bill.due_date >= start, Bill.due_date < add_months(start, 1))
    if status:
        status = status.upper()
        if status == "UNPAID":
            status = "PENDING"
        if status in ("PAID", "PENDING"):
            query = query.filter(Bill.status == status)
    return query.order_by(Bill.due_date.asc(), Bill.id.asc()).all()


# =============================================================================
# PAYMENT STATE
# =============================================================================

def _lock_bill(bill_id: int) -> Bill:
    bill = lock_for_update(db.session.query(Bill).filter_by(id=bill_id)).first()
    if not bill:
        raise NotFoundError("Bill not found")
    return bill


def _assert_paid_month_open(bill: Bill) -> None:
    # A paid bill without a paid_at has no month to protect
    if bill.status == "PAID" and bill.paid_at is not None:
        assert_month_open(competency_month(bill.paid_at))


def _reverse_expense(bill: Bill, actor, reason: str) -> None:
    if bill.amount_cents <= 0:
        return
    ledger_service.append_movement(
        type="ADJUSTMENT",
        direction="IN",
        amount_cents=bill.amount_cents,
        payment_method=LEDGER_METHODS.get(bill.paid_method) if bill.paid_method else None,
        related_kind="bill",
        related_id=bill.id,
        created_by_user_id=actor.id if actor else None,
        competency_month=current_month(),
        details={"reason": reason, "reverses": "OPERATING_EXPENSE"},
    )


def mark_paid(bill_id: int, method: str, actor=None) -> Bill:
    """
    Mark a bill as paid.

    Raises:
        NotFoundError: no such bill
        ConflictError: current month is closed (nothing is changed)
    """
    def _op():
        month = current_month()
        assert_month_open(month)

        bill = _lock_bill(bill_id)
        if bill.status == "PAID":
            return bill

        now = utcnow()
        bill.status = "PAID"
        bill.paid_at = now
        bill.paid_method = method

        if bill.amount_cents > 0:
            ledger_service.append_movement(
                type="OPERATING_EXPENSE",
                direction="OUT",
                amount_cents=bill.amount_cents,
                payment_method=LEDGER_METHODS[method],
                related_kind="bill",
                related_id=bill.id,
                created_by_user_id=actor.id if actor else None,
                occurred_at=now,
                competency_month=month,
                details={"name": bill.name},
            )
        return bill

    return run_in_transaction(_op)


def mark_unpaid(bill_id: int, actor=None) -> Bill:
    """
    Revert a paid bill to PENDING.

    Raises ConflictError when the month it was paid in is closed.
    """
    def _op():
        bill = _lock_bill(bill_id)
        if bill.status != "PAID":
            return bill

        _assert_paid_month_open(bill)
        _reverse_expense(bill, actor, "mark_unpaid")

        bill.status = "PENDING"
        bill.paid_at = None
        bill.paid_method = None
        return bill

    return run_in_transaction(_op)


def delete_bill(bill_id: int, actor=None) -> None:
    """
    Delete a bill.

    Raises ConflictError when the bill is paid and its paid month is closed.
    """
    def _op():
        bill = _lock_bill(bill_id)
        _assert_paid_month_open(bill)
        if bill.status == "PAID":
            _reverse_expense(bill, actor, "delete")
        db.session.delete(bill)

    run_in_transaction(_op)
    logger.info("Deleted bill %s", bill_id)
