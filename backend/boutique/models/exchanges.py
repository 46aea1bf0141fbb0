from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Exchange(db.Model):
    """
    Merchandise exchange: items returned (IN) against items taken (OUT).

    difference_cents = total_out - total_in; a positive difference is
    collected from the customer and counted in the cashier's register.
    """
    __tablename__ = "exchanges"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    document_number = db.Column(db.String(64), nullable=False, index=True)
    customer_name = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    payment_method = db.Column(db.String(16), nullable=True)

    total_in_cents = db.Column(db.Integer, nullable=False, default=0)
    total_out_cents = db.Column(db.Integer, nullable=False, default=0)
    difference_cents = db.Column(db.Integer, nullable=False, default=0)
    cash_in_amount_cents = db.Column(db.Integer, nullable=False, default=0)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    cash_register_session_id = db.Column(
        db.Integer, db.ForeignKey("cash_register_sessions.id"), nullable=True, index=True
    )
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    items = db.relationship("ExchangeItem", backref="exchange", cascade="all, delete-orphan", order_by="ExchangeItem.id", lazy=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "document_number": self.document_number,
            "customer_name": self.customer_name,
            "notes": self.notes,
            "payment_method": self.payment_method,
            "items": [item.to_dict() for item in self.items],
            "total_in_cents": self.total_in_cents,
            "total_out_cents": self.total_out_cents,
            "difference_cents": self.difference_cents,
            "cash_in_amount_cents": self.cash_in_amount_cents,
            "created_by_user_id": self.created_by_user_id,
            "cash_register_session_id": self.cash_register_session_id,
            "created_at": to_utc_z(self.created_at),
        }


class ExchangeItem(db.Model):
    __tablename__ = "exchange_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    exchange_id = db.Column(db.Integer, db.ForeignKey("exchanges.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    product_name = db.Column(db.String(255), nullable=False)
    size = db.Column(db.String(16), nullable=False, default="")
    quantity = db.Column(db.Integer, nullable=False)
    direction = db.Column(db.String(3), nullable=False)  # IN, OUT
    unit_price_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "size": self.size,
            "quantity": self.quantity,
            "direction": self.direction,
            "unit_price_cents": self.unit_price_cents,
            "total_cents": self.total_cents,
        }
