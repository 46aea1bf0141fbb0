# Overview: Typed request variants parsed from JSON bodies before dispatch.

"""
Request schemas.

Action endpoints accept a discriminated body ({"action": ...}). Each body
is parsed into one explicit dataclass variant here, so services never
see raw dicts and unknown actions fail with a 400 before any work.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Union

from .errors import ValidationError
from .time_utils import parse_iso_date
from .validation import coerce_int, coerce_money


PAYMENT_METHODS = ("CASH", "DEBIT", "CREDIT", "PIX")

# Tender method -> ledger payment method
LEDGER_METHODS = {
    "CASH": "cash",
    "DEBIT": "debit",
    "CREDIT": "credit",
    "PIX": "pix",
}

MAX_CART_LINES = 200


def _require_dict(payload: Any) -> dict:
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload


def parse_payment_method(value: Any, *, field_name: str = "method") -> str:
    method = str(value or "").strip().upper()
    if method not in PAYMENT_METHODS:
        raise ValidationError(
            f"Invalid {field_name}: {value}",
            details={"allowed": list(PAYMENT_METHODS)},
        )
    return method


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


# =============================================================================
# CHECKOUT
# =============================================================================

@dataclass(frozen=True)
class CartLine:
    product_id: int
    size: str
    quantity: int


@dataclass(frozen=True)
class PaymentAllocation:
    method: str
    amount_cents: int


@dataclass(frozen=True)
class CheckoutRequest:
    items: tuple[CartLine, ...]
    payments: tuple[PaymentAllocation, ...]
    discount_cents: int
    client_id: int | None
    pay_later: bool
    idempotency_key: str | None

    def fingerprint(self) -> dict:
        """Canonical form hashed for idempotency comparisons."""
        return {
            "items": [[line.product_id, line.size, line.quantity] for line in self.items],
            "payments": [[p.method, p.amount_cents] for p in self.payments],
            "discount_cents": self.discount_cents,
            "client_id": self.client_id,
            "pay_later": self.pay_later,
        }


def parse_checkout(payload: Any) -> CheckoutRequest:
    data = _require_dict(payload)

    raw_items = data.get("items")
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("Cart is empty")
    if len(raw_items) > MAX_CART_LINES:
        raise ValidationError(f"Cart cannot exceed {MAX_CART_LINES} lines")

    items = []
    for idx, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{idx}] must be an object")
        if raw.get("product_id") in (None, ""):
            raise ValidationError(f"items[{idx}].product_id is required")
        quantity = coerce_int(f"items[{idx}].quantity", raw.get("quantity"))
        if quantity <= 0:
            raise ValidationError(f"items[{idx}].quantity must be > 0")
        items.append(CartLine(
            product_id=coerce_int(f"items[{idx}].product_id", raw.get("product_id")),
            size=str(raw.get("size") or "").strip().upper(),
            quantity=quantity,
        ))

    raw_payments = data.get("payments") or []
    if not isinstance(raw_payments, list):
        raise ValidationError("payments must be a list")
    payments = []
    for idx, raw in enumerate(raw_payments):
        if not isinstance(raw, dict):
            raise ValidationError(f"payments[{idx}] must be an object")
        payments.append(PaymentAllocation(
            method=parse_payment_method(raw.get("method"), field_name=f"payments[{idx}].method"),
            amount_cents=coerce_money(f"payments[{idx}].amount_cents", raw.get("amount_cents", 0)),
        ))

    discount = data.get("discount_cents")
    discount_cents = coerce_money("discount_cents", discount) if discount not in (None, "") else 0

    client_id = data.get("client_id")
    pay_later = data.get("pay_later", False)
    if not isinstance(pay_later, bool):
        raise ValidationError("pay_later must be a boolean")

    key = _optional_str(data.get("idempotency_key"))
    if key is not None and len(key) > 128:
        raise ValidationError("idempotency_key exceeds max length 128")

    return CheckoutRequest(
        items=tuple(items),
        payments=tuple(payments),
        discount_cents=discount_cents,
        client_id=coerce_int("client_id", client_id) if client_id not in (None, "") else None,
        pay_later=pay_later,
        idempotency_key=key,
    )


# =============================================================================
# CASH REGISTER
# =============================================================================

@dataclass(frozen=True)
class OpenRegister:
    opening_balance_cents: int


@dataclass(frozen=True)
class CloseRegister:
    closing_balance_cents: int


RegisterAction = Union[OpenRegister, CloseRegister]


def parse_register_action(payload: Any) -> RegisterAction:
    data = _require_dict(payload)
    action = data.get("action")
    if action == "open":
        return OpenRegister(coerce_money("opening_balance_cents", data.get("opening_balance_cents", 0)))
    if action == "close":
        return CloseRegister(coerce_money("closing_balance_cents", data.get("closing_balance_cents", 0)))
    raise ValidationError("Invalid action", details={"allowed": ["open", "close"]})


# =============================================================================
# CLIENTS
# =============================================================================

@dataclass(frozen=True)
class PayClientOrder:
    order_id: int
    amount_cents: int | None
    method: str


@dataclass(frozen=True)
class AdjustClientBalance:
    amount_cents: int


ClientAction = Union[PayClientOrder, AdjustClientBalance]


def parse_client_action(payload: Any) -> ClientAction:
    data = _require_dict(payload)
    action = data.get("action")

    if action == "pay_order":
        if data.get("order_id") in (None, ""):
            raise ValidationError("order_id is required")
        amount = data.get("amount_cents")
        amount_cents = None
        if amount not in (None, ""):
            amount_cents = coerce_money("amount_cents", amount)
            if amount_cents <= 0:
                raise ValidationError("amount_cents must be > 0")
        method = data.get("method")
        return PayClientOrder(
            order_id=coerce_int("order_id", data.get("order_id")),
            amount_cents=amount_cents,
            method=parse_payment_method(method) if method else "CASH",
        )

    if action == "adjust_balance":
        if data.get("amount_cents") in (None, ""):
            raise ValidationError("amount_cents is required")
        return AdjustClientBalance(coerce_int("amount_cents", data.get("amount_cents")))

    raise ValidationError("Invalid action", details={"allowed": ["pay_order", "adjust_balance"]})


# =============================================================================
# BILLS
# =============================================================================

@dataclass(frozen=True)
class MarkBillPaid:
    method: str


@dataclass(frozen=True)
class MarkBillUnpaid:
    pass


BillAction = Union[MarkBillPaid, MarkBillUnpaid]


def parse_bill_action(payload: Any) -> BillAction:
    data = _require_dict(payload)
    action = data.get("action")
    if action == "mark_paid":
        method = data.get("method")
        return MarkBillPaid(parse_payment_method(method) if method else "CASH")
    if action == "mark_unpaid":
        return MarkBillUnpaid()
    raise ValidationError("Invalid action", details={"allowed": ["mark_paid", "mark_unpaid"]})


@dataclass(frozen=True)
class FixedBillRequest:
    name: str
    amount_cents: int
    day_of_month: int
    months_ahead: int
    start_month: date | None


@dataclass(frozen=True)
class OneTimeBillRequest:
    name: str
    amount_cents: int
    due_date: date


@dataclass(frozen=True)
class InstallmentBillRequest:
    name: str
    amount_cents: int
    first_due_date: date
    installments_count: int
    interval_months: int


BillCreateRequest = Union[FixedBillRequest, OneTimeBillRequest, InstallmentBillRequest]

MAX_MONTHS_AHEAD = 36
DEFAULT_MONTHS_AHEAD = 12
MAX_INSTALLMENTS = 60
MAX_INTERVAL_MONTHS = 12


def _parse_date(name: str, value: Any) -> date:
    if not value:
        raise ValidationError(f"{name} is required")
    try:
        parsed = parse_iso_date(str(value))
    except ValueError:
        raise ValidationError(f"{name} must be an ISO-8601 date")
    if parsed is None:
        raise ValidationError(f"{name} is required")
    return parsed


def parse_month(value: Any) -> str:
    """Validate a "YYYY-MM" competency month string."""
    text = str(value or "").strip()
    if len(text) != 7 or text[4] != "-" or not (text[:4] + text[5:]).isdigit():
        raise ValidationError("month must be in YYYY-MM format")
    if not 1 <= int(text[5:]) <= 12:
        raise ValidationError("month must be in YYYY-MM format")
    return text


def parse_bill_create(payload: Any) -> BillCreateRequest:
    data = _require_dict(payload)

    kind = str(data.get("kind") or "").strip().upper()
    name = str(data.get("name") or "").strip()
    if not name:
        raise ValidationError("name is required")
    if len(name) > 255:
        raise ValidationError("name exceeds max length 255")
    amount_cents = coerce_money("amount_cents", data.get("amount_cents", 0))
    if amount_cents <= 0:
        raise ValidationError("amount_cents must be > 0")

    if kind == "FIXED":
        day = coerce_int("day_of_month", data.get("day_of_month"))
        if not 1 <= day <= 31:
            raise ValidationError("day_of_month must be between 1 and 31")
        raw_ahead = data.get("months_ahead")
        months_ahead = coerce_int("months_ahead", raw_ahead) if raw_ahead not in (None, "") else 0
        months_ahead = min(MAX_MONTHS_AHEAD, months_ahead) if months_ahead > 0 else DEFAULT_MONTHS_AHEAD
        start = data.get("start_month")
        start_month = None
        if start:
            month = parse_month(start)
            start_month = date(int(month[:4]), int(month[5:]), 1)
        return FixedBillRequest(name, amount_cents, day, months_ahead, start_month)

    if kind == "ONE_TIME":
        return OneTimeBillRequest(name, amount_cents, _parse_date("due_date", data.get("due_date")))

    if kind in ("INSTALLMENTS", "INSTALLMENT"):
        first_due = _parse_date("first_due_date", data.get("first_due_date"))
        count = coerce_int("installments_count", data.get("installments_count"))
        if count <= 0:
            raise ValidationError("installments_count must be > 0")
        raw_interval = data.get("interval_months")
        interval = coerce_int("interval_months", raw_interval) if raw_interval not in (None, "") else 1
        interval = min(MAX_INTERVAL_MONTHS, interval) if interval > 0 else 1
        return InstallmentBillRequest(name, amount_cents, first_due, min(MAX_INSTALLMENTS, count), interval)

    raise ValidationError("Invalid kind", details={"allowed": ["FIXED", "ONE_TIME", "INSTALLMENTS"]})


# =============================================================================
# EXCHANGES
# =============================================================================

@dataclass(frozen=True)
class ExchangeLine:
    product_id: int
    size: str
    quantity: int
    direction: str  # IN, OUT


@dataclass(frozen=True)
class ExchangeRequest:
    items: tuple[ExchangeLine, ...]
    payment_method: str | None
    document_number: str | None
    customer_name: str | None
    notes: str | None


def parse_exchange(payload: Any) -> ExchangeRequest:
    data = _require_dict(payload)

    raw_items = data.get("items")
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("Add at least one item to the exchange")

    items = []
    for idx, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{idx}] must be an object")
        direction = str(raw.get("direction") or "").strip().upper()
        if direction not in ("IN", "OUT"):
            raise ValidationError(f"items[{idx}].direction must be IN or OUT")
        quantity = coerce_int(f"items[{idx}].quantity", raw.get("quantity"))
        if quantity <= 0:
            raise ValidationError(f"items[{idx}].quantity must be > 0")
        if raw.get("product_id") in (None, ""):
            raise ValidationError(f"items[{idx}].product_id is required")
        items.append(ExchangeLine(
            product_id=coerce_int(f"items[{idx}].product_id", raw.get("product_id")),
            size=str(raw.get("size") or "").strip().upper(),
            quantity=quantity,
            direction=direction,
        ))

    method = data.get("payment_method")
    return ExchangeRequest(
        items=tuple(items),
        payment_method=parse_payment_method(method, field_name="payment_method") if method else None,
        document_number=_optional_str(data.get("document_number")),
        customer_name=_optional_str(data.get("customer_name")),
        notes=_optional_str(data.get("notes")),
    )
