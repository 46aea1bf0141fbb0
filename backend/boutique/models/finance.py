from __future__ import annotations

from ..extensions import db
from ..time_utils import to_iso_date, to_utc_z


class Bill(db.Model):
    """
    Payable bill (rent, utilities, supplier installments).

    LIFECYCLE: PENDING <-> PAID. Fixed and installment bills are created
    as a group of rows sharing group_id, one per due month.
    """
    __tablename__ = "bills"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    due_date = db.Column(db.Date, nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, default="PENDING", index=True)  # PENDING, PAID
    kind = db.Column(db.String(16), nullable=False, default="ONE_TIME")  # FIXED, ONE_TIME, INSTALLMENT

    group_id = db.Column(db.String(36), nullable=True, index=True)
    installment_number = db.Column(db.Integer, nullable=True)
    installment_count = db.Column(db.Integer, nullable=True)

    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)
    paid_method = db.Column(db.String(16), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "amount_cents": self.amount_cents,
            "due_date": to_iso_date(self.due_date),
            "status": self.status,
            "kind": self.kind,
            "group_id": self.group_id,
            "installment_number": self.installment_number,
            "installment_count": self.installment_count,
            "paid_at": to_utc_z(self.paid_at),
            "paid_method": self.paid_method,
            "created_at": to_utc_z(self.created_at),
        }


class FinancialMovement(db.Model):
    """
    Append-only money ledger entry.

    INVARIANTS:
    - Never updated or deleted; corrections are new ADJUSTMENT rows.
    - Written inside the same transaction as the domain change it records.
    - competency_month is the "YYYY-MM" the movement counts toward.
    """
    __tablename__ = "financial_movements"
    __table_args__ = (
        db.Index("ix_financial_movements_month_type", "competency_month", "type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    type = db.Column(db.String(32), nullable=False)
    direction = db.Column(db.String(3), nullable=False)  # IN, OUT
    amount_cents = db.Column(db.Integer, nullable=False)
    payment_method = db.Column(db.String(16), nullable=True)  # cash, debit, credit, pix

    related_kind = db.Column(db.String(32), nullable=True)
    related_id = db.Column(db.Integer, nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False)
    competency_month = db.Column(db.String(7), nullable=False, index=True)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    details = db.Column(db.JSON, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "direction": self.direction,
            "amount_cents": self.amount_cents,
            "payment_method": self.payment_method,
            "related_kind": self.related_kind,
            "related_id": self.related_id,
            "occurred_at": to_utc_z(self.occurred_at),
            "competency_month": self.competency_month,
            "created_by_user_id": self.created_by_user_id,
            "details": self.details,
        }


class FinancialClosure(db.Model):
    """Lock on a competency month plus the snapshot taken when closing it."""
    __tablename__ = "financial_closures"

    month = db.Column(db.String(7), primary_key=True)  # YYYY-MM

    revenue_cents = db.Column(db.Integer, nullable=False, default=0)
    cogs_cents = db.Column(db.Integer, nullable=False, default=0)
    gross_profit_cents = db.Column(db.Integer, nullable=False, default=0)
    expenses_cents = db.Column(db.Integer, nullable=False, default=0)
    net_result_cents = db.Column(db.Integer, nullable=False, default=0)
    cash_in_cents = db.Column(db.Integer, nullable=False, default=0)
    cash_out_cents = db.Column(db.Integer, nullable=False, default=0)
    inventory_value_cents = db.Column(db.Integer, nullable=False, default=0)
    fiado_outstanding_cents = db.Column(db.Integer, nullable=False, default=0)

    locked_at = db.Column(db.DateTime(timezone=True), nullable=False)
    locked_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    def to_dict(self) -> dict:
        return {
            "month": self.month,
            "snapshot": {
                "revenue_cents": self.revenue_cents,
                "cogs_cents": self.cogs_cents,
                "gross_profit_cents": self.gross_profit_cents,
                "expenses_cents": self.expenses_cents,
                "net_result_cents": self.net_result_cents,
                "cash_in_cents": self.cash_in_cents,
                "cash_out_cents": self.cash_out_cents,
                "inventory_value_cents": self.inventory_value_cents,
                "fiado_outstanding_cents": self.fiado_outstanding_cents,
            },
            "locked_at": to_utc_z(self.locked_at),
            "locked_by_user_id": self.locked_by_user_id,
        }


class FinancialAuditLog(db.Model):
    __tablename__ = "financial_audit_logs"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    action = db.Column(db.String(32), nullable=False, index=True)  # FINANCIAL_CLOSE, MANUAL_ADJUSTMENT
    actor_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    actor_role = db.Column(db.String(16), nullable=True)
    competency_month = db.Column(db.String(7), nullable=True)
    related_kind = db.Column(db.String(32), nullable=True)
    related_id = db.Column(db.String(64), nullable=True)
    payload = db.Column(db.JSON, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "action": self.action,
            "actor_user_id": self.actor_user_id,
            "actor_role": self.actor_role,
            "competency_month": self.competency_month,
            "related_kind": self.related_kind,
            "related_id": self.related_id,
            "payload": self.payload,
            "created_at": to_utc_z(self.created_at),
        }
