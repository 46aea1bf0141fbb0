# Overview: Cash-register sessions per cashier and their running totals.

"""
Cash-register session manager.

LIFECYCLE (per cashier): CLOSED -> OPEN -> CLOSED.

- The open session is always looked up in the database by cashier id;
  nothing is cached in process memory.
- Running totals move only through SQL increments (col = col + x) so
  concurrent checkouts never overwrite each other.
- No reconciliation on close: the counted closing balance is stored as is.
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError
from ..extensions import db
from ..models import CashRegisterSession, Order
from ..schemas import LEDGER_METHODS
from ..time_utils import utcnow
from .concurrency import lock_for_update, run_in_transaction

logger = logging.getLogger(__name__)


# Ledger method -> running total column
_METHOD_COLUMNS = {
    "cash": "total_cash_cents",
    "debit": "total_debit_cents",
    "credit": "total_credit_cents",
    "pix": "total_pix_cents",
}


def get_open_register(user_id: int) -> CashRegisterSession | None:
    return db.session.query(CashRegisterSession).filter_by(
        user_id=user_id,
        status="OPEN",
    ).first()


def open_register(user, opening_balance_cents: int = 0) -> CashRegisterSession:
    """
    Open a register session for the cashier.

    Raises ConflictError if the cashier already has one open.
    """
    def _op():
        if get_open_register(user.id):
            raise ConflictError("Cash register is already open")

        register = CashRegisterSession(
            user_id=user.id,
            user_name=user.name,
            status="OPEN",
            opening_balance_cents=opening_balance_cents,
            opened_at=utcnow(),
        )
        db.session.add(register)
        db.session.flush()
        return register

    try:
        register = run_in_transaction(_op)
    except IntegrityError:
        # Lost a race against a concurrent open for the same cashier
        raise ConflictError("Cash register is already open")

    logger.info("Opened cash register session %s for user %s", register.id, user.id)
    return register


def close_register(user, closing_balance_cents: int = 0) -> tuple[CashRegisterSession, list[Order]]:
    """
    Close the cashier's open session.

    Returns the closed session and the orders recorded against it.
    Raises ConflictError if no session is open.
    """
    def _op():
        register = lock_for_update(
            db.session.query(CashRegisterSession).filter_by(user_id=user.id, status="OPEN")
        ).first()
        if not register:
            raise ConflictError("No open cash register")

        register.status = "CLOSED"
        register.closing_balance_cents = closing_balance_cents
        register.closed_at = utcnow()
        return register

    register = run_in_transaction(_op)
    logger.info("Closed cash register session %s for user %s", register.id, user.id)
    return register, get_session_orders(register.id)


def get_session_orders(session_id: int) -> list[Order]:
    return db.session.query(Order).filter_by(
        cash_register_session_id=session_id
    ).order_by(Order.created_at.asc(), Order.id.asc()).all()


def record_sale(session_id: int, total_cents: int, payments) -> None:
    """
    Accumulate an immediate sale into a session's totals.

    `payments` is an iterable of (method, amount_cents) with tender
    methods (CASH, DEBIT, ...). Runs in the caller's transaction.
    """
    values = {
        "total_sales_cents": CashRegisterSession.total_sales_cents + total_cents,
        "sales_count": CashRegisterSession.sales_count + 1,
    }
    for method, amount_cents in payments:
        name = _METHOD_COLUMNS[LEDGER_METHODS[method]]
        current = values.get(name, getattr(CashRegisterSession, name))
        values[name] = current + amount_cents

    db.session.query(CashRegisterSession).filter_by(id=session_id).update(
        values, synchronize_session=False
    )


def record_exchange_difference(session_id: int, amount_cents: int, method: str) -> None:
    """Accumulate money collected on an exchange. Runs in the caller's transaction."""
    name = _METHOD_COLUMNS[LEDGER_METHODS[method]]
    db.session.query(CashRegisterSession).filter_by(id=session_id).update(
        {
            "exchange_difference_in_cents": CashRegisterSession.exchange_difference_in_cents + amount_cents,
            "exchange_difference_count": CashRegisterSession.exchange_difference_count + 1,
            name: getattr(CashRegisterSession, name) + amount_cents,
        },
        synchronize_session=False,
    )
