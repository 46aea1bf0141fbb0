# Overview: Flask API routes for bills payable.

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth, require_capability
from ..errors import ServiceError
from ..extensions import db
from ..schemas import MarkBillPaid, parse_bill_action, parse_bill_create, parse_month
from ..services import bill_service


bills_bp = Blueprint("bills", __name__, url_prefix="/api/bills")


@bills_bp.get("")
@require_auth
@require_capability("MANAGE_BILLS")
def list_bills_route():
    """
    Query params:
    - month: YYYY-MM (due month)
    - status: all | paid | pending | unpaid
    """
    month = request.args.get("month")
    if month:
        month = parse_month(month)
    bills = bill_service.list_bills(month=month, status=request.args.get("status"))
    return jsonify({"bills": [b.to_dict() for b in bills]}), 200


@bills_bp.post("")
@require_auth
@require_capability("MANAGE_BILLS")
def create_bills_route():
    """
    Create bills.

    FIXED:        {"kind": "FIXED", "name", "amount_cents", "day_of_month", "months_ahead"?, "start_month"?}
    ONE_TIME:     {"kind": "ONE_TIME", "name", "amount_cents", "due_date"}
    INSTALLMENTS: {"kind": "INSTALLMENTS", "name", "amount_cents", "first_due_date",
                   "installments_count", "interval_months"?}
    """
    bill_request = parse_bill_create(request.get_json(silent=True))
    bills = bill_service.create_bills(bill_request)
    return jsonify({
        "kind": bills[0].kind,
        "group_id": bills[0].group_id,
        "bills": [b.to_dict() for b in bills],
    }), 201


@bills_bp.patch("/<int:bill_id>")
@require_auth
@require_capability("MANAGE_BILLS")
def bill_action_route(bill_id: int):
    """
    {"action": "mark_paid", "method": "PIX"}  (method defaults to CASH)
    {"action": "mark_unpaid"}
    """
    try:
        action = parse_bill_action(request.get_json(silent=True))
        if isinstance(action, MarkBillPaid):
            bill = bill_service.mark_paid(bill_id, action.method, actor=g.current_user)
        else:
            bill = bill_service.mark_unpaid(bill_id, actor=g.current_user)
        return jsonify(bill.to_dict()), 200

    except ServiceError as e:
        current_app.logger.warning("%s %s -> %s: %s", request.method, request.path, e.status_code, e.message)
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update bill")
        return jsonify({"error": "Internal server error"}), 500


@bills_bp.delete("/<int:bill_id>")
@require_auth
@require_capability("MANAGE_BILLS")
def delete_bill_route(bill_id: int):
    try:
        bill_service.delete_bill(bill_id, actor=g.current_user)
        return jsonify({"ok": True}), 200

    except ServiceError as e:
        current_app.logger.warning("%s %s -> %s: %s", request.method, request.path, e.status_code, e.message)
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to delete bill")
        return jsonify({"error": "Internal server error"}), 500
