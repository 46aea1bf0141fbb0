from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class StoreSettings(db.Model):
    """Single-row store profile printed on receipts."""
    __tablename__ = "store_settings"

    id = db.Column(db.Integer, primary_key=True)
    store_name = db.Column(db.String(255), nullable=False, default="")
    address = db.Column(db.String(255), nullable=False, default="")
    phone = db.Column(db.String(64), nullable=False, default="")
    cnpj = db.Column(db.String(32), nullable=False, default="")
    footer_message = db.Column(db.String(255), nullable=False, default="")
    exchange_days = db.Column(db.Integer, nullable=False, default=30)

    updated_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "store_name": self.store_name,
            "address": self.address,
            "phone": self.phone,
            "cnpj": self.cnpj,
            "footer_message": self.footer_message,
            "exchange_days": self.exchange_days,
            "updated_at": to_utc_z(self.updated_at),
        }
