"""
Client ledger tests: balances, settlement of deferred orders, CRUD.
"""

from boutique.extensions import db
from boutique.models import Client, ClientPayment, FinancialAuditLog, FinancialMovement, Order

from conftest import close_current_month


def _sell_on_credit(client, headers, product, customer, quantity=2):
    resp = client.post("/api/checkout", json={
        "items": [{"product_id": product.id, "size": "M", "quantity": quantity}],
        "client_id": customer.id,
        "pay_later": True,
    }, headers=headers)
    assert resp.status_code == 201
    return resp.json


def _pay(client, headers, customer_id, **body):
    return client.patch(f"/api/clients/{customer_id}", json={"action": "pay_order", **body}, headers=headers)


class TestSettlement:

    def test_full_settlement(self, client, admin_headers, dress, customer):
        order = _sell_on_credit(client, admin_headers, dress, customer)

        resp = _pay(client, admin_headers, customer.id, order_id=order["id"], method="PIX")
        assert resp.status_code == 200
        assert resp.json["client"]["balance_cents"] == 0
        assert resp.json["order"]["remaining_cents"] == 0
        assert resp.json["order"]["amount_paid_cents"] == 9980
        assert resp.json["order"]["paid_at"] is not None
        assert resp.json["order"]["payment_history"][0]["method"] == "PIX"

        movement = db.session.query(FinancialMovement).filter_by(type="FIADO_PAYMENT").one()
        assert movement.amount_cents == 9980
        assert movement.payment_method == "pix"

    def test_partial_settlement(self, client, admin_headers, dress, customer):
        order = _sell_on_credit(client, admin_headers, dress, customer)

        resp = _pay(client, admin_headers, customer.id, order_id=order["id"], amount_cents=3000)
        assert resp.status_code == 200
        assert resp.json["client"]["balance_cents"] == 6980
        assert resp.json["order"]["remaining_cents"] == 6980
        assert resp.json["order"]["paid_at"] is None

        detail = client.get(f"/api/clients/{customer.id}", headers=admin_headers).json
        assert [o["id"] for o in detail["pending_orders"]] == [order["id"]]

    def test_overpayment_is_capped(self, client, admin_headers, dress, customer):
        order = _sell_on_credit(client, admin_headers, dress, customer)
        resp = _pay(client, admin_headers, customer.id, order_id=order["id"], amount_cents=50000)
        assert resp.json["order"]["amount_paid_cents"] == 9980
        assert resp.json["client"]["balance_cents"] == 0

    def test_double_settlement_fails(self, client, admin_headers, dress, customer):
        order = _sell_on_credit(client, admin_headers, dress, customer)

        assert _pay(client, admin_headers, customer.id, order_id=order["id"]).status_code == 200
        resp = _pay(client, admin_headers, customer.id, order_id=order["id"])
        assert resp.status_code == 404
        assert resp.json["error"] == "Order not found or already paid"

        assert db.session.get(Client, customer.id).balance_cents == 0
        assert db.session.query(ClientPayment).count() == 1

    def test_order_of_another_client(self, client, admin_headers, dress, customer, db_session):
        other = Client(name="Joana", balance_cents=0)
        db_session.add(other)
        db_session.commit()
        order = _sell_on_credit(client, admin_headers, dress, customer)

        resp = _pay(client, admin_headers, other.id, order_id=order["id"])
        assert resp.status_code == 404

    def test_immediate_order_cannot_be_settled(self, client, admin_headers, dress, customer):
        order = client.post("/api/checkout", json={
            "items": [{"product_id": dress.id, "size": "M", "quantity": 1}],
        }, headers=admin_headers).json
        resp = _pay(client, admin_headers, customer.id, order_id=order["id"])
        assert resp.status_code == 404

    def test_closed_month_blocks_settlement(self, client, admin_headers, dress, customer):
        order = _sell_on_credit(client, admin_headers, dress, customer)
        close_current_month()

        resp = _pay(client, admin_headers, customer.id, order_id=order["id"])
        assert resp.status_code == 409
        assert db.session.get(Order, order["id"]).remaining_cents == 9980
        assert db.session.get(Client, customer.id).balance_cents == 9980


class TestBalanceAdjustment:

    def test_manual_adjustment_is_audited(self, client, owner_headers, customer):
        resp = client.patch(
            f"/api/clients/{customer.id}",
            json={"action": "adjust_balance", "amount_cents": -1500},
            headers=owner_headers,
        )
        assert resp.status_code == 200
        assert resp.json["client"]["balance_cents"] == -1500

        entry = db.session.query(FinancialAuditLog).filter_by(action="MANUAL_ADJUSTMENT").one()
        assert entry.related_id == str(customer.id)
        assert entry.actor_role == "OWNER"
        assert entry.payload == {"delta_cents": -1500}

    def test_unknown_action(self, client, admin_headers, customer):
        resp = client.patch(f"/api/clients/{customer.id}", json={"action": "forgive"}, headers=admin_headers)
        assert resp.status_code == 400

    def test_unknown_client(self, client, admin_headers, seed):
        resp = client.patch("/api/clients/999", json={"action": "adjust_balance", "amount_cents": 10}, headers=admin_headers)
        assert resp.status_code == 404


class TestClientCrud:

    def test_create_and_list(self, client, admin_headers):
        resp = client.post("/api/clients", json={"name": "Beatriz", "phone": "1199"}, headers=admin_headers)
        assert resp.status_code == 201
        assert resp.json["balance_cents"] == 0

        names = [c["name"] for c in client.get("/api/clients", headers=admin_headers).json["clients"]]
        assert names == ["Beatriz"]

    def test_create_requires_name(self, client, admin_headers):
        resp = client.post("/api/clients", json={"phone": "1199"}, headers=admin_headers)
        assert resp.status_code == 400

    def test_balance_is_not_writable(self, client, admin_headers, customer):
        resp = client.put(f"/api/clients/{customer.id}", json={"balance_cents": 0}, headers=admin_headers)
        assert resp.status_code == 400

    def test_update(self, client, admin_headers, customer):
        resp = client.put(f"/api/clients/{customer.id}", json={"notes": "Prefers PIX"}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["notes"] == "Prefers PIX"

    def test_delete_with_balance_refused(self, client, admin_headers, dress, customer):
        _sell_on_credit(client, admin_headers, dress, customer, quantity=1)
        resp = client.delete(f"/api/clients/{customer.id}", headers=admin_headers)
        assert resp.status_code == 400
        assert db.session.get(Client, customer.id) is not None

    def test_delete_settled_client_refused(self, client, admin_headers, dress, customer):
        order = _sell_on_credit(client, admin_headers, dress, customer, quantity=1)
        assert _pay(client, admin_headers, customer.id, order_id=order["id"]).status_code == 200

        resp = client.delete(f"/api/clients/{customer.id}", headers=admin_headers)
        assert resp.status_code == 409
        assert db.session.get(Client, customer.id) is not None
        assert db.session.query(ClientPayment).filter_by(client_id=customer.id).count() == 1

    def test_delete(self, client, admin_headers, customer):
        customer_id = customer.id
        assert client.delete(f"/api/clients/{customer_id}", headers=admin_headers).status_code == 200
        assert db.session.get(Client, customer_id) is None
