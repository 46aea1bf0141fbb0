# Overview: Append-only financial movement ledger and financial audit log.

from __future__ import annotations

from datetime import datetime
from typing import Optional

from ..extensions import db
from ..models import FinancialAuditLog, FinancialMovement
from ..time_utils import month_key, utcnow

"""
Financial ledger invariants

- Append-only: movements are never updated or deleted.
- Movements are written inside the same DB transaction as the domain
  change they record (flush, never commit, here).
- amount_cents is always positive; direction carries the sign.
- competency_month defaults to the month of occurred_at (UTC).
"""

MOVEMENT_TYPES = (
    "SALE_REVENUE",
    "COGS",
    "OPERATING_EXPENSE",
    "FIADO_PAYMENT",
    "EXCHANGE_DIFFERENCE",
    "ADJUSTMENT",
)

DIRECTIONS = ("IN", "OUT")


def append_movement(
    *,
    type: str,
    direction: str,
    amount_cents: int,
    payment_method: str | None = None,
    related_kind: str | None = None,
    related_id: int | None = None,
    created_by_user_id: int | None = None,
    occurred_at: Optional[datetime] = None,
    competency_month: str | None = None,
    details: dict | None = None,
) -> FinancialMovement:
    """
    Append one ledger movement to the current transaction.

    Raises ValueError on an unknown type/direction or a non-positive
    amount; callers skip zero-value movements before calling.
    """
    if type not in MOVEMENT_TYPES:
        raise ValueError(f"Unknown movement type: {type}")
    if direction not in DIRECTIONS:
        raise ValueError(f"Unknown movement direction: {direction}")
    if amount_cents <= 0:
        raise ValueError("Movement amount must be positive")

    occurred_at = occurred_at or utcnow()
    movement = FinancialMovement(
        type=type,
        direction=direction,
        amount_cents=amount_cents,
        payment_method=payment_method,
        related_kind=related_kind,
        related_id=related_id,
        occurred_at=occurred_at,
        competency_month=competency_month or month_key(occurred_at),
        created_by_user_id=created_by_user_id,
        details=details,
    )
    db.session.add(movement)
    db.session.flush()
    return movement


def list_movements(
    *,
    month: str | None = None,
    related_kind: str | None = None,
    related_id: int | None = None,
) -> list[FinancialMovement]:
    query = db.session.query(FinancialMovement)
    if month:
        query = query.filter(FinancialMovement.competency_month == month)
    if related_kind:
        query = query.filter(FinancialMovement.related_kind == related_kind)
    if related_id is not None:
        query = query.filter(FinancialMovement.related_id == related_id)
    return query.order_by(FinancialMovement.id.asc()).all()


def append_audit_log(
    *,
    action: str,
    actor,
    competency_month: str | None = None,
    related_kind: str | None = None,
    related_id: str | int | None = None,
    payload: dict | None = None,
) -> FinancialAuditLog:
    entry = FinancialAuditLog(
        action=action,
        actor_user_id=actor.id if actor else None,
        actor_role=actor.role if actor else None,
        competency_month=competency_month,
        related_kind=related_kind,
        related_id=str(related_id) if related_id is not None else None,
        payload=payload,
    )
    db.session.add(entry)
    db.session.flush()
    return entry
