# Overview: Order history queries.

from __future__ import annotations

from datetime import date, datetime, time, timedelta

from ..errors import NotFoundError
from ..extensions import db
from ..models import Order


def day_bounds(start: date | None, end: date | None) -> tuple[datetime | None, datetime | None]:
    """Inclusive day range -> [start 00:00, day after end 00:00) in UTC."""
    lower = datetime.combine(start, time.min) if start else None
    upper = datetime.combine(end + timedelta(days=1), time.min) if end else None
    return lower, upper


def list_orders(start: date | None = None, end: date | None = None) -> list[Order]:
    lower, upper = day_bounds(start, end)
    query = db.session.query(Order)
    if lower is not None:
        query = query.filter(Order.created_at >= lower)
    if upper is not None:
        query = query.filter(Order.created_at < upper)
    return query.order_by(Order.created_at.desc(), Order.id.desc()).all()


def get_order(order_id: int) -> Order:
    order = db.session.get(Order, order_id)
    if not order:
        raise NotFoundError("Order not found")
    return order
