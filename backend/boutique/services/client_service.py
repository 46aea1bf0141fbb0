# Overview: Client records, credit balance and settlement of deferred orders.

"""
Client ledger.

A client's balance_cents is what they owe the store. It rises when a
deferred ("pay later") order is checked out and falls when a payment is
applied to one of their pending orders. Every change is a single SQL
increment inside the transaction that causes it.
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Client, ClientPayment, Order
from ..schemas import LEDGER_METHODS
from ..time_utils import utcnow
from ..validation import ModelValidationPolicy, validate_payload
from . import ledger_service
from .closure_service import assert_month_open, current_month
from .concurrency import lock_for_update, run_in_transaction

logger = logging.getLogger(__name__)


CLIENT_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({"name", "phone", "email", "notes"}),
    required_on_create=frozenset({"name"}),
)


def list_clients() -> list[Client]:
    return db.session.query(Client).order_by(Client.name.asc()).all()


def get_client(client_id: int) -> Client:
    client = db.session.get(Client, client_id)
    if not client:
        raise NotFoundError("Client not found")
    return client


def create_client(payload: dict) -> Client:
    patch = validate_payload(model=Client, payload=payload, policy=CLIENT_POLICY, partial=False)
    client = Client(balance_cents=0, **patch)
    db.session.add(client)
    db.session.commit()
    return client


def update_client(client_id: int, payload: dict) -> Client:
    patch = validate_payload(model=Client, payload=payload, policy=CLIENT_POLICY, partial=True)
    client = get_client(client_id)
    for key, value in patch.items():
        setattr(client, key, value)
    db.session.commit()
    return client


def delete_client(client_id: int) -> None:
    """Delete a client. Refused while the balance is not zero or once the client has orders."""
    def _op():
        client = lock_for_update(db.session.query(Client).filter_by(id=client_id)).first()
        if not client:
            raise NotFoundError("Client not found")
        if client.balance_cents != 0:
            raise ValidationError(
                "Cannot delete client with outstanding balance",
                details={"balance_cents": client.balance_cents},
            )
        ordered = db.session.query(Order.id).filter_by(client_id=client_id).first()
        paid = db.session.query(ClientPayment.id).filter_by(client_id=client_id).first()
        if ordered or paid:
            raise ConflictError("Client is referenced by orders or payments")
        db.session.delete(client)

    try:
        run_in_transaction(_op)
    except IntegrityError:
        raise ConflictError("Client is referenced by orders or payments")
    logger.info("Deleted client %s", client_id)


def adjust_balance(client_id: int, delta_cents: int) -> None:
    """
    Atomically add `delta_cents` (signed) to the client's balance.

    Runs in the caller's transaction; raises NotFoundError if no row
    was updated.
    """
    updated = db.session.query(Client).filter_by(id=client_id).update(
        {"balance_cents": Client.balance_cents + delta_cents},
        synchronize_session=False,
    )
    if not updated:
        raise NotFoundError("Client not found")


def manual_adjust_balance(client_id: int, delta_cents: int, actor) -> Client:
    """Standalone balance correction, recorded in the financial audit log."""
    def _op():
        adjust_balance(client_id, delta_cents)
        ledger_service.append_audit_log(
            action="MANUAL_ADJUSTMENT",
            actor=actor,
            competency_month=current_month(),
            related_kind="client",
            related_id=client_id,
            payload={"delta_cents": delta_cents},
        )

    run_in_transaction(_op)
    return get_client(client_id)


def get_pending_orders(client_id: int) -> list[Order]:
    return db.session.query(Order).filter(
        Order.client_id == client_id,
        Order.is_paid_later.is_(True),
        Order.remaining_cents > 0,
    ).order_by(Order.created_at.asc(), Order.id.asc()).all()


def settle_order(
    client_id: int,
    order_id: int,
    *,
    amount_cents: int | None = None,
    method: str = "CASH",
    actor=None,
) -> Order:
    """
    Apply a payment to one of the client's pending deferred orders.

    - amount_cents None settles the whole remaining amount; larger
      amounts are capped at what remains
    - the order row is locked, so a second settlement of the same order
      sees remaining == 0 and fails with NotFoundError
    - the client's balance falls by exactly the applied amount
    - a FIADO_PAYMENT movement is appended in the current month

    Raises:
        NotFoundError: order missing, not deferred, other client, or already paid
        ConflictError: current month is closed
    """
    def _op():
        month = current_month()
        assert_month_open(month)

        order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
        if (
            not order
            or order.client_id != client_id
            or not order.is_paid_later
            or order.remaining_cents <= 0
        ):
            raise NotFoundError("Order not found or already paid")

        applied = order.remaining_cents if amount_cents is None else min(amount_cents, order.remaining_cents)
        now = utcnow()

        order.amount_paid_cents += applied
        order.remaining_cents -= applied
        if order.remaining_cents == 0:
            order.paid_at = now

        db.session.add(ClientPayment(
            order_id=order.id,
            client_id=client_id,
            amount_cents=applied,
            method=method,
            received_by_user_id=actor.id if actor else None,
            created_at=now,
        ))
        adjust_balance(client_id, -applied)

        ledger_service.append_movement(
            type="FIADO_PAYMENT",
            direction="IN",
            amount_cents=applied,
            payment_method=LEDGER_METHODS[method],
            related_kind="order",
            related_id=order.id,
            created_by_user_id=actor.id if actor else None,
            occurred_at=now,
            competency_month=month,
            details={"client_id": client_id},
        )
        return order

    order = run_in_transaction(_op)
    logger.info("Applied payment to order %s for client %s", order_id, client_id)
    return order
