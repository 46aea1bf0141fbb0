# Overview: Transactional checkout: stock, order, register, client balance and ledger.

"""
Checkout orchestrator.

One checkout is one database transaction. Inside it, in order:

1. the current competency month must be open
2. every cart line re-reads its product and size row under lock and is
   checked for existence and stock
3. stock is decremented on the size row and on the product aggregate
4. the order is written (deferred or immediate)
5. deferred: the client's balance rises by the total
   immediate: the cashier's open register session (if any) accumulates
   the sale
6. SALE_REVENUE and COGS movements are appended

Any failure rolls all of it back. Lock and optimistic-version conflicts
are retried by run_in_transaction; on SQLite the write lock is taken up
front with BEGIN IMMEDIATE, elsewhere rows are read FOR UPDATE.
"""

from __future__ import annotations

import logging

from ..errors import (
    ForbiddenError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)
from ..extensions import db
from ..models import Client, Order, OrderItem, OrderPayment, Product
from ..permissions import has_capability
from ..schemas import CheckoutRequest
from ..time_utils import utcnow
from . import idempotency_service, ledger_service, register_service
from .client_service import adjust_balance
from .closure_service import assert_month_open, current_month
from .concurrency import lock_for_update, run_in_transaction

logger = logging.getLogger(__name__)

IDEMPOTENCY_SCOPE = "checkout"


class CheckoutResult:
    """Order payload plus whether it was replayed from an idempotency key."""

    def __init__(self, order: dict, replayed: bool = False):
        self.order = order
        self.replayed = replayed


def _lock_product(product_id: int) -> Product | None:
    return lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()


def _take_stock(product: Product, size: str, quantity: int) -> None:
    """Decrement size and aggregate stock, or raise."""
    if product.sizes:
        if not size:
            raise ValidationError(f"Size is required for {product.name}", details={"product_id": product.id})
        row = product.size_row(size)
        if row is None:
            raise NotFoundError(
                f"Size {size} not found for {product.name}",
                details={"product_id": product.id, "size": size},
            )
        if row.stock < quantity:
            raise InsufficientStockError(
                f"Insufficient stock for {product.name} ({size})",
                details={
                    "product_id": product.id,
                    "size": size,
                    "requested_quantity": quantity,
                    "available": row.stock,
                },
            )
        row.stock -= quantity
        product.recompute_stock()
        return

    if size:
        raise NotFoundError(
            f"Size {size} not found for {product.name}",
            details={"product_id": product.id, "size": size},
        )
    if product.stock < quantity:
        raise InsufficientStockError(
            f"Insufficient stock for {product.name}",
            details={
                "product_id": product.id,
                "requested_quantity": quantity,
                "available": product.stock,
            },
        )
    product.stock -= quantity


def _checkout_locked(request: CheckoutRequest, user, discount_cents: int) -> Order:
    month = current_month()
    assert_month_open(month)

    client = None
    if request.pay_later:
        client = db.session.get(Client, request.client_id)
        if not client:
            raise NotFoundError("Client not found")

    now = utcnow()
    order = Order(
        discount_cents=discount_cents,
        is_paid_later=request.pay_later,
        client_id=client.id if client else None,
        client_name=client.name if client else None,
        created_by_user_id=user.id,
        created_at=now,
    )

    subtotal = 0
    cogs_total = 0
    products: dict[int, Product] = {}
    for line in request.items:
        product = products.get(line.product_id)
        if product is None:
            product = _lock_product(line.product_id)
            if not product:
                raise NotFoundError("Product not found", details={"product_id": line.product_id})
            products[line.product_id] = product

        _take_stock(product, line.size, line.quantity)

        revenue = product.price_cents * line.quantity
        cost = product.cost_cents * line.quantity
        subtotal += revenue
        cogs_total += cost
        order.items.append(OrderItem(
            product_id=product.id,
            product_name=product.name,
            owner_id=product.owner_id,
            size=line.size,
            quantity=line.quantity,
            unit_cost_cents=product.cost_cents,
            unit_price_cents=product.price_cents,
            total_cost_cents=cost,
            total_revenue_cents=revenue,
            profit_cents=revenue - cost,
        ))

    if discount_cents > subtotal:
        raise ValidationError(
            "Discount cannot exceed subtotal",
            details={"subtotal_cents": subtotal, "discount_cents": discount_cents},
        )
    total = subtotal - discount_cents

    paid = sum(p.amount_cents for p in request.payments)
    if not request.pay_later and request.payments and paid != total:
        raise ValidationError(
            "Payments must add up to the order total",
            details={"total_cents": total, "payments_cents": paid},
        )

    order.subtotal_cents = subtotal
    order.total_cents = total
    order.cogs_total_cents = cogs_total

    register = register_service.get_open_register(user.id)
    order.cash_register_session_id = register.id if register else None

    if request.pay_later:
        order.amount_paid_cents = 0
        order.remaining_cents = total
    else:
        order.amount_paid_cents = total
        order.remaining_cents = 0
        order.paid_at = now
        for allocation in request.payments:
            order.payments.append(OrderPayment(method=allocation.method, amount_cents=allocation.amount_cents))

    db.session.add(order)
    db.session.flush()

    if request.pay_later:
        adjust_balance(client.id, total)
    elif register:
        register_service.record_sale(
            register.id,
            total,
            [(p.method, p.amount_cents) for p in request.payments],
        )

    if total > 0:
        ledger_service.append_movement(
            type="SALE_REVENUE",
            direction="IN",
            amount_cents=total,
            related_kind="order",
            related_id=order.id,
            created_by_user_id=user.id,
            occurred_at=now,
            competency_month=month,
            details={"pay_later": request.pay_later},
        )
    if cogs_total > 0:
        ledger_service.append_movement(
            type="COGS",
            direction="OUT",
            amount_cents=cogs_total,
            related_kind="order",
            related_id=order.id,
            created_by_user_id=user.id,
            occurred_at=now,
            competency_month=month,
        )

    return order


def process_checkout(request: CheckoutRequest, user) -> CheckoutResult:
    """
    Run a checkout for `user`.

    Raises:
        ValidationError / InsufficientStockError: bad cart, discount > subtotal,
            payments that do not add up to the total
        ForbiddenError: pay later without the capability
        NotFoundError: unknown product, size or client
        ConflictError: month closed, idempotency key conflict
    """
    if not request.items:
        raise ValidationError("Cart is empty")

    discount_cents = request.discount_cents
    if discount_cents and not has_capability(user, "APPLY_DISCOUNT"):
        logger.info("Ignoring discount from user %s without discount capability", user.id)
        discount_cents = 0

    if request.pay_later:
        if not has_capability(user, "SELL_PAY_LATER"):
            raise ForbiddenError("Only administrators can sell on credit")
        if request.client_id is None:
            raise ValidationError("client_id is required for pay later")

    claim = None
    if request.idempotency_key:
        claim = idempotency_service.claim(
            IDEMPOTENCY_SCOPE,
            user.id,
            request.idempotency_key,
            request.fingerprint(),
        )
        if claim.replay is not None:
            return CheckoutResult(claim.replay, replayed=True)

    def _op():
        order = _checkout_locked(request, user, discount_cents)
        payload = order.to_dict()
        if claim:
            idempotency_service.complete(claim.record_id, payload, order_id=order.id)
        return payload

    try:
        payload = run_in_transaction(_op)
    except Exception:
        if claim:
            idempotency_service.release(claim.record_id)
        raise

    logger.info(
        "Checkout completed: order %s total %s by user %s%s",
        payload["id"],
        payload["total_cents"],
        user.id,
        " (pay later)" if request.pay_later else "",
    )
    return CheckoutResult(payload)
