"""
Checkout tests.

Verifies:
- Stock decrements on the size row and the product aggregate
- Failed carts leave stock, orders and the ledger untouched
- Discount and pay-later rules by role
- Register accumulation, idempotency keys and closed months
"""

import logging

from boutique.extensions import db
from boutique.models import CashRegisterSession, Client, FinancialMovement, Order, Product, ProductSize
from boutique.services import ledger_service

from conftest import close_current_month, make_product


def _size_stock(product_id, size):
    row = db.session.query(ProductSize).filter_by(product_id=product_id, size=size).one()
    return row.stock


def _checkout(client, headers, **body):
    return client.post("/api/checkout", json=body, headers=headers)


class TestImmediateCheckout:

    def test_decrements_size_and_aggregate_stock(self, client, cashier_headers, dress):
        resp = _checkout(
            client, cashier_headers,
            items=[{"product_id": dress.id, "size": "M", "quantity": 2}],
            payments=[{"method": "PIX", "amount_cents": 9980}],
        )
        assert resp.status_code == 201
        order = resp.json
        assert order["subtotal_cents"] == 9980
        assert order["total_cents"] == 9980
        assert order["cogs_total_cents"] == 4000
        assert order["is_paid_later"] is False
        assert order["payments"] == [{"method": "PIX", "amount_cents": 9980}]
        assert order["paid_at"] is not None

        assert _size_stock(dress.id, "M") == 13
        assert db.session.get(Product, dress.id).stock == 15

    def test_lowercase_size_matches(self, client, cashier_headers, dress):
        resp = _checkout(client, cashier_headers, items=[{"product_id": dress.id, "size": "m", "quantity": 1}])
        assert resp.status_code == 201
        assert _size_stock(dress.id, "M") == 14

    def test_product_without_sizes(self, client, cashier_headers, db_session):
        scarf = make_product(name="Scarf", sku="SC-001", price_cents=1500, cost_cents=500, stock=4)
        resp = _checkout(client, cashier_headers, items=[{"product_id": scarf.id, "quantity": 3}])
        assert resp.status_code == 201
        assert db.session.get(Product, scarf.id).stock == 1

    def test_appends_revenue_and_cogs_movements(self, client, cashier_headers, dress):
        resp = _checkout(client, cashier_headers, items=[{"product_id": dress.id, "size": "M", "quantity": 2}])
        order_id = resp.json["id"]

        movements = ledger_service.list_movements(related_kind="order", related_id=order_id)
        by_type = {m.type: m for m in movements}
        assert by_type["SALE_REVENUE"].amount_cents == 9980
        assert by_type["SALE_REVENUE"].direction == "IN"
        assert by_type["COGS"].amount_cents == 4000
        assert by_type["COGS"].direction == "OUT"


class TestCheckoutFailures:

    def test_insufficient_stock_changes_nothing(self, client, cashier_headers, dress):
        resp = _checkout(
            client, cashier_headers,
            items=[
                {"product_id": dress.id, "size": "M", "quantity": 2},
                {"product_id": dress.id, "size": "G", "quantity": 3},
            ],
        )
        assert resp.status_code == 400
        assert "Insufficient stock" in resp.json["error"]

        assert _size_stock(dress.id, "M") == 15
        assert _size_stock(dress.id, "G") == 2
        assert db.session.query(Order).count() == 0
        assert db.session.query(FinancialMovement).count() == 0

    def test_unknown_product(self, client, cashier_headers, dress):
        resp = _checkout(client, cashier_headers, items=[{"product_id": 9999, "size": "M", "quantity": 1}])
        assert resp.status_code == 404

    def test_unknown_size(self, client, cashier_headers, dress):
        resp = _checkout(client, cashier_headers, items=[{"product_id": dress.id, "size": "XG", "quantity": 1}])
        assert resp.status_code == 404

    def test_missing_size_on_sized_product(self, client, cashier_headers, dress):
        resp = _checkout(client, cashier_headers, items=[{"product_id": dress.id, "quantity": 1}])
        assert resp.status_code == 400

    def test_empty_cart(self, client, cashier_headers, dress):
        resp = _checkout(client, cashier_headers, items=[])
        assert resp.status_code == 400

    def test_invalid_quantity(self, client, cashier_headers, dress):
        resp = _checkout(client, cashier_headers, items=[{"product_id": dress.id, "size": "M", "quantity": 0}])
        assert resp.status_code == 400

    def test_payments_must_match_total(self, client, cashier_headers, dress):
        resp = _checkout(
            client, cashier_headers,
            items=[{"product_id": dress.id, "size": "M", "quantity": 2}],
            payments=[{"method": "CASH", "amount_cents": 5000}],
        )
        assert resp.status_code == 400
        assert resp.json["details"] == {"total_cents": 9980, "payments_cents": 5000}
        assert _size_stock(dress.id, "M") == 15
        assert db.session.query(Order).count() == 0

    def test_rejection_is_logged(self, client, cashier_headers, dress, caplog):
        with caplog.at_level(logging.WARNING, logger="boutique"):
            resp = _checkout(
                client, cashier_headers,
                items=[{"product_id": dress.id, "size": "G", "quantity": 3}],
            )
        assert resp.status_code == 400
        assert "POST /api/checkout -> 400" in caplog.text

    def test_closed_month_rejects_checkout(self, client, cashier_headers, dress):
        close_current_month()
        resp = _checkout(client, cashier_headers, items=[{"product_id": dress.id, "size": "M", "quantity": 1}])
        assert resp.status_code == 409
        assert _size_stock(dress.id, "M") == 15


class TestDiscounts:

    def test_cashier_discount_is_ignored(self, client, cashier_headers, dress):
        resp = _checkout(
            client, cashier_headers,
            items=[{"product_id": dress.id, "size": "M", "quantity": 1}],
            discount_cents=1000,
        )
        assert resp.status_code == 201
        assert resp.json["discount_cents"] == 0
        assert resp.json["total_cents"] == 4990

    def test_owner_discount_applies(self, client, owner_headers, dress):
        resp = _checkout(
            client, owner_headers,
            items=[{"product_id": dress.id, "size": "M", "quantity": 1}],
            discount_cents=990,
        )
        assert resp.status_code == 201
        assert resp.json["total_cents"] == 4000

    def test_discount_above_subtotal_rejected(self, client, admin_headers, dress):
        resp = _checkout(
            client, admin_headers,
            items=[{"product_id": dress.id, "size": "M", "quantity": 1}],
            discount_cents=5000,
        )
        assert resp.status_code == 400
        assert _size_stock(dress.id, "M") == 15


class TestPayLater:

    def test_increases_client_balance(self, client, admin_headers, dress, customer):
        resp = _checkout(
            client, admin_headers,
            items=[{"product_id": dress.id, "size": "M", "quantity": 2}],
            discount_cents=0,
            client_id=customer.id,
            pay_later=True,
        )
        assert resp.status_code == 201
        order = resp.json
        assert order["is_paid_later"] is True
        assert order["payments"] == []
        assert order["remaining_cents"] == 9980
        assert order["amount_paid_cents"] == 0
        assert order["paid_at"] is None
        assert order["client_name"] == "Maria Souza"

        assert db.session.get(Client, customer.id).balance_cents == 9980

    def test_skips_register_accounting(self, client, admin_headers, dress, customer):
        client.post("/api/cash-register", json={"action": "open"}, headers=admin_headers)
        _checkout(
            client, admin_headers,
            items=[{"product_id": dress.id, "size": "M", "quantity": 1}],
            client_id=customer.id,
            pay_later=True,
        )
        register = db.session.query(CashRegisterSession).one()
        assert register.total_sales_cents == 0
        assert register.sales_count == 0

    def test_cashier_cannot_sell_on_credit(self, client, cashier_headers, dress, customer):
        resp = _checkout(
            client, cashier_headers,
            items=[{"product_id": dress.id, "size": "M", "quantity": 1}],
            client_id=customer.id,
            pay_later=True,
        )
        assert resp.status_code == 403
        assert db.session.get(Client, customer.id).balance_cents == 0
        assert _size_stock(dress.id, "M") == 15

    def test_requires_client(self, client, admin_headers, dress):
        resp = _checkout(
            client, admin_headers,
            items=[{"product_id": dress.id, "size": "M", "quantity": 1}],
            pay_later=True,
        )
        assert resp.status_code == 400

    def test_unknown_client(self, client, admin_headers, dress):
        resp = _checkout(
            client, admin_headers,
            items=[{"product_id": dress.id, "size": "M", "quantity": 1}],
            client_id=4242,
            pay_later=True,
        )
        assert resp.status_code == 404
        assert _size_stock(dress.id, "M") == 15


class TestRegisterAccumulation:

    def test_open_register_accumulates_by_method(self, client, cashier_headers, dress):
        client.post("/api/cash-register", json={"action": "open", "opening_balance_cents": 10000}, headers=cashier_headers)

        resp = _checkout(
            client, cashier_headers,
            items=[{"product_id": dress.id, "size": "M", "quantity": 2}],
            payments=[{"method": "PIX", "amount_cents": 5000}, {"method": "CASH", "amount_cents": 4980}],
        )
        assert resp.json["cash_register_session_id"] is not None

        register = client.get("/api/cash-register", headers=cashier_headers).json["register"]
        assert register["total_sales_cents"] == 9980
        assert register["sales_count"] == 1
        assert register["total_pix_cents"] == 5000
        assert register["total_cash_cents"] == 4980
        assert register["total_debit_cents"] == 0

    def test_checkout_without_register(self, client, cashier_headers, dress):
        resp = _checkout(client, cashier_headers, items=[{"product_id": dress.id, "size": "M", "quantity": 1}])
        assert resp.status_code == 201
        assert resp.json["cash_register_session_id"] is None


class TestIdempotency:

    def test_replay_returns_same_order(self, client, cashier_headers, dress):
        body = {
            "items": [{"product_id": dress.id, "size": "M", "quantity": 1}],
            "idempotency_key": "sale-0001",
        }
        first = client.post("/api/checkout", json=body, headers=cashier_headers)
        second = client.post("/api/checkout", json=body, headers=cashier_headers)

        assert first.status_code == 201
        assert second.status_code == 200
        assert second.json["id"] == first.json["id"]
        assert _size_stock(dress.id, "M") == 14
        assert db.session.query(Order).count() == 1

    def test_key_from_header(self, client, cashier_headers, dress):
        body = {"items": [{"product_id": dress.id, "size": "M", "quantity": 1}]}
        headers = {**cashier_headers, "Idempotency-Key": "sale-0002"}
        client.post("/api/checkout", json=body, headers=headers)
        resp = client.post("/api/checkout", json=body, headers=headers)
        assert resp.status_code == 200
        assert db.session.query(Order).count() == 1

    def test_key_reused_with_different_payload(self, client, cashier_headers, dress):
        client.post("/api/checkout", json={
            "items": [{"product_id": dress.id, "size": "M", "quantity": 1}],
            "idempotency_key": "sale-0003",
        }, headers=cashier_headers)
        resp = client.post("/api/checkout", json={
            "items": [{"product_id": dress.id, "size": "M", "quantity": 2}],
            "idempotency_key": "sale-0003",
        }, headers=cashier_headers)
        assert resp.status_code == 409

    def test_failed_checkout_releases_key(self, client, cashier_headers, dress):
        body = {
            "items": [{"product_id": dress.id, "size": "G", "quantity": 3}],
            "idempotency_key": "sale-0004",
        }
        assert client.post("/api/checkout", json=body, headers=cashier_headers).status_code == 400

        db.session.query(ProductSize).filter_by(product_id=dress.id, size="G").update({"stock": 5})
        db.session.commit()

        resp = client.post("/api/checkout", json=body, headers=cashier_headers)
        assert resp.status_code == 201

    def test_required_when_configured(self, app, client, cashier_headers, dress):
        app.config["IDEMPOTENCY_REQUIRED"] = True
        try:
            resp = _checkout(client, cashier_headers, items=[{"product_id": dress.id, "size": "M", "quantity": 1}])
        finally:
            app.config["IDEMPOTENCY_REQUIRED"] = False
        assert resp.status_code == 400
