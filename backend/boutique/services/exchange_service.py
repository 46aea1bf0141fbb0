# Overview: Merchandise exchanges with stock movement and difference collection.

from __future__ import annotations

import logging
from datetime import datetime

from ..errors import InsufficientStockError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Exchange, ExchangeItem, Product
from ..schemas import LEDGER_METHODS, ExchangeRequest
from ..time_utils import utcnow
from . import ledger_service, register_service
from .closure_service import assert_month_open, current_month
from .concurrency import lock_for_update, run_in_transaction

logger = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 50
MAX_LIST_LIMIT = 500


def _move_stock(product: Product, size: str, quantity: int, direction: str) -> None:
    delta = quantity if direction == "IN" else -quantity

    if product.sizes:
        if not size:
            raise ValidationError(f"Size is required for {product.name}", details={"product_id": product.id})
        row = product.size_row(size)
        if row is None:
            raise NotFoundError(
                f"Size {size} not found for {product.name}",
                details={"product_id": product.id, "size": size},
            )
        if direction == "OUT" and row.stock < quantity:
            raise InsufficientStockError(
                f"Insufficient stock for {product.name} ({size})",
                details={"product_id": product.id, "size": size, "available": row.stock},
            )
        row.stock += delta
        product.recompute_stock()
        return

    if size:
        raise NotFoundError(
            f"Size {size} not found for {product.name}",
            details={"product_id": product.id, "size": size},
        )
    if direction == "OUT" and product.stock < quantity:
        raise InsufficientStockError(
            f"Insufficient stock for {product.name}",
            details={"product_id": product.id, "available": product.stock},
        )
    product.stock += delta


def create_exchange(request: ExchangeRequest, user) -> Exchange:
    """
    Record an exchange in one transaction.

    Returned items (IN) go back to stock, taken items (OUT) leave it.
    When the customer takes more value than they return, the difference
    requires a payment method, is added to the caller's open register
    session (if any) and is booked as an EXCHANGE_DIFFERENCE movement.
    """
    def _op():
        month = current_month()
        assert_month_open(month)
        now = utcnow()

        exchange = Exchange(
            document_number=request.document_number or f"EXCHANGE-{now.strftime('%Y%m%d%H%M%S%f')}",
            customer_name=request.customer_name,
            notes=request.notes,
            created_by_user_id=user.id,
            created_at=now,
        )

        products: dict[int, Product] = {}
        total_in = 0
        total_out = 0
        for line in request.items:
            product = products.get(line.product_id)
            if product is None:
                product = lock_for_update(db.session.query(Product).filter_by(id=line.product_id)).first()
                if not product:
                    raise NotFoundError("Product not found", details={"product_id": line.product_id})
                products[line.product_id] = product

            _move_stock(product, line.size, line.quantity, line.direction)

            line_total = product.price_cents * line.quantity
            if line.direction == "IN":
                total_in += line_total
            else:
                total_out += line_total

            exchange.items.append(ExchangeItem(
                product_id=product.id,
                product_name=product.name,
                size=line.size,
                quantity=line.quantity,
                direction=line.direction,
                unit_price_cents=product.price_cents,
                total_cents=line_total,
            ))

        difference = total_out - total_in
        cash_in = max(0, difference)
        if cash_in > 0 and not request.payment_method:
            raise ValidationError("payment_method is required when the customer owes a difference")

        exchange.total_in_cents = total_in
        exchange.total_out_cents = total_out
        exchange.difference_cents = difference
        exchange.cash_in_amount_cents = cash_in
        exchange.payment_method = request.payment_method if cash_in > 0 else None

        register = register_service.get_open_register(user.id)
        exchange.cash_register_session_id = register.id if register else None

        db.session.add(exchange)
        db.session.flush()

        if cash_in > 0:
            if register:
                register_service.record_exchange_difference(register.id, cash_in, request.payment_method)
            ledger_service.append_movement(
                type="EXCHANGE_DIFFERENCE",
                direction="IN",
                amount_cents=cash_in,
                payment_method=LEDGER_METHODS[request.payment_method],
                related_kind="exchange",
                related_id=exchange.id,
                created_by_user_id=user.id,
                occurred_at=now,
                competency_month=month,
            )
        return exchange

    exchange = run_in_transaction(_op)
    logger.info("Recorded exchange %s (difference %s)", exchange.id, exchange.difference_cents)
    return exchange


def list_exchanges(
    limit: int = DEFAULT_LIST_LIMIT,
    start: datetime | None = None,
    end: datetime | None = None,
) -> list[Exchange]:
    limit = max(1, min(MAX_LIST_LIMIT, limit))
    query = db.session.query(Exchange)
    if start is not None:
        query = query.filter(Exchange.created_at >= start)
    if end is not None:
        query = query.filter(Exchange.created_at <= end)
    return query.order_by(Exchange.created_at.desc(), Exchange.id.desc()).limit(limit).all()
