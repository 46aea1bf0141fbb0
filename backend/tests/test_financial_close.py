"""
Month closure tests.
"""

import pytest

from boutique.extensions import db
from boutique.models import FinancialAuditLog, FinancialClosure, FinancialMovement
from boutique.services import closure_service, ledger_service
from boutique.services.closure_service import current_month
from boutique.time_utils import add_months, utcnow

from conftest import make_product


def _previous_month() -> str:
    today = utcnow().date()
    prev = add_months(today.replace(day=1), -1)
    return f"{prev.year:04d}-{prev.month:02d}"


def _close(client, headers, month):
    return client.post("/api/financial-close", json={"month": month}, headers=headers)


class TestCloseMonth:

    def test_close_previous_month(self, client, admin_headers, seed):
        month = _previous_month()
        resp = _close(client, admin_headers, month)
        assert resp.status_code == 201
        assert resp.json["month"] == month
        assert resp.json["locked_by_user_id"] == seed["admin"].id

        listed = client.get("/api/financial-close", headers=admin_headers).json
        assert listed["current_month"] == current_month()
        assert [c["month"] for c in listed["closures"]] == [month]

        audit = db.session.query(FinancialAuditLog).filter_by(action="FINANCIAL_CLOSE").one()
        assert audit.competency_month == month

    def test_close_twice_conflicts(self, client, admin_headers):
        month = _previous_month()
        assert _close(client, admin_headers, month).status_code == 201
        assert _close(client, admin_headers, month).status_code == 409

    def test_current_month_cannot_be_closed(self, client, admin_headers):
        resp = _close(client, admin_headers, current_month())
        assert resp.status_code == 400
        assert db.session.query(FinancialClosure).count() == 0

    def test_malformed_month(self, client, admin_headers):
        assert _close(client, admin_headers, "2026/01").status_code == 400
        assert _close(client, admin_headers, None).status_code == 400

    def test_closed_month_is_reported_closed(self, client, admin_headers):
        month = _previous_month()
        assert not closure_service.is_month_closed(month)
        _close(client, admin_headers, month)
        assert closure_service.is_month_closed(month)


class TestSnapshot:

    def test_snapshot_aggregates_ledger(self, db_session, seed):
        month = _previous_month()
        for type_, direction, amount in [
            ("SALE_REVENUE", "IN", 10000),
            ("COGS", "OUT", 4000),
            ("OPERATING_EXPENSE", "OUT", 1500),
            ("FIADO_PAYMENT", "IN", 2000),
        ]:
            ledger_service.append_movement(
                type=type_, direction=direction, amount_cents=amount, competency_month=month,
            )
        db_session.commit()
        make_product(sku="SN-1", cost_cents=700, stock=3)

        snapshot = closure_service.compute_snapshot(month)
        assert snapshot["revenue_cents"] == 10000
        assert snapshot["cogs_cents"] == 4000
        assert snapshot["gross_profit_cents"] == 6000
        assert snapshot["expenses_cents"] == 1500
        assert snapshot["net_result_cents"] == 4500
        assert snapshot["cash_in_cents"] == 12000
        assert snapshot["cash_out_cents"] == 5500
        assert snapshot["inventory_value_cents"] == 2100

    def test_other_months_are_excluded(self, db_session, seed):
        ledger_service.append_movement(
            type="SALE_REVENUE", direction="IN", amount_cents=999, competency_month=current_month(),
        )
        db_session.commit()
        assert closure_service.compute_snapshot(_previous_month())["revenue_cents"] == 0


class TestLedger:

    def test_rejects_non_positive_amount(self, db_session):
        with pytest.raises(ValueError):
            ledger_service.append_movement(type="COGS", direction="OUT", amount_cents=0)
        assert db_session.query(FinancialMovement).count() == 0

    def test_competency_month_defaults_to_occurred_at(self, db_session):
        movement = ledger_service.append_movement(type="ADJUSTMENT", direction="IN", amount_cents=1)
        assert movement.competency_month == current_month()
        db_session.rollback()
