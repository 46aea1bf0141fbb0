from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class CashRegisterSession(db.Model):
    """
    A cashier's register shift.

    LIFECYCLE: OPEN -> CLOSED. At most one OPEN session per cashier,
    enforced by a partial unique index. Running totals only ever move by
    SQL increments (see register_service.record_sale).
    """
    __tablename__ = "cash_register_sessions"
    __table_args__ = (
        db.Index(
            "uq_cash_register_open_per_user",
            "user_id",
            unique=True,
            sqlite_where=db.text("status = 'OPEN'"),
            postgresql_where=db.text("status = 'OPEN'"),
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    user_name = db.Column(db.String(128), nullable=False)
    status = db.Column(db.String(16), nullable=False, default="OPEN", index=True)  # OPEN, CLOSED

    opening_balance_cents = db.Column(db.Integer, nullable=False, default=0)
    closing_balance_cents = db.Column(db.Integer, nullable=True)

    total_sales_cents = db.Column(db.Integer, nullable=False, default=0)
    sales_count = db.Column(db.Integer, nullable=False, default=0)
    total_cash_cents = db.Column(db.Integer, nullable=False, default=0)
    total_debit_cents = db.Column(db.Integer, nullable=False, default=0)
    total_credit_cents = db.Column(db.Integer, nullable=False, default=0)
    total_pix_cents = db.Column(db.Integer, nullable=False, default=0)
    exchange_difference_in_cents = db.Column(db.Integer, nullable=False, default=0)
    exchange_difference_count = db.Column(db.Integer, nullable=False, default=0)

    opened_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    user = db.relationship("User", backref=db.backref("register_sessions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "user_name": self.user_name,
            "status": self.status,
            "opening_balance_cents": self.opening_balance_cents,
            "closing_balance_cents": self.closing_balance_cents,
            "total_sales_cents": self.total_sales_cents,
            "sales_count": self.sales_count,
            "total_cash_cents": self.total_cash_cents,
            "total_debit_cents": self.total_debit_cents,
            "total_credit_cents": self.total_credit_cents,
            "total_pix_cents": self.total_pix_cents,
            "exchange_difference_in_cents": self.exchange_difference_in_cents,
            "exchange_difference_count": self.exchange_difference_count,
            "opened_at": to_utc_z(self.opened_at),
            "closed_at": to_utc_z(self.closed_at),
        }
