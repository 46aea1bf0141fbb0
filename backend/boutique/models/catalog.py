from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Owner(db.Model):
    """Consignment owner of products (the store itself or a partner)."""
    __tablename__ = "owners"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False, unique=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "created_at": to_utc_z(self.created_at),
        }


class Product(db.Model):
    """
    Sellable apparel item.

    INVARIANT: when a product has size rows, `stock` equals the sum of
    their stock after every mutation that touches sizes. Products without
    sizes track stock on the aggregate column only.
    """
    __tablename__ = "products"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    sku = db.Column(db.String(64), nullable=False, unique=True, index=True)
    owner_id = db.Column(db.Integer, db.ForeignKey("owners.id"), nullable=True, index=True)

    plus_sized = db.Column(db.Boolean, nullable=False, default=False)

    cost_cents = db.Column(db.Integer, nullable=False, default=0)
    price_cents = db.Column(db.Integer, nullable=False, default=0)
    stock = db.Column(db.Integer, nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    owner = db.relationship("Owner", backref=db.backref("products", lazy=True))
    sizes = db.relationship(
        "ProductSize",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="ProductSize.id",
        lazy=True,
    )
    __mapper_args__ = {"version_id_col": version_id}

    def size_row(self, size: str) -> "ProductSize | None":
        for row in self.sizes:
            if row.size == size:
                return row
        return None

    def recompute_stock(self) -> None:
        if self.sizes:
            self.stock = sum(row.stock for row in self.sizes)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "sku": self.sku,
            "owner_id": self.owner_id,
            "owner_name": self.owner.name if self.owner else None,
            "plus_sized": self.plus_sized,
            "cost_cents": self.cost_cents,
            "price_cents": self.price_cents,
            "stock": self.stock,
            "sizes": [row.to_dict() for row in self.sizes],
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class ProductSize(db.Model):
    __tablename__ = "product_sizes"
    __table_args__ = (
        db.UniqueConstraint("product_id", "size", name="uq_product_sizes_product_size"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    size = db.Column(db.String(16), nullable=False)
    stock = db.Column(db.Integer, nullable=False, default=0)

    product = db.relationship("Product", back_populates="sizes")

    def to_dict(self) -> dict:
        return {"size": self.size, "stock": self.stock}


class Supplier(db.Model):
    __tablename__ = "suppliers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    instagram = db.Column(db.String(128), nullable=True)
    whatsapp = db.Column(db.String(64), nullable=True)
    website = db.Column(db.String(255), nullable=True)
    observations = db.Column(db.Text, nullable=True)
    # Comma separated subset of CASH, DEBIT, CREDIT, PIX, FIADO
    accepted_payment_methods = db.Column(db.String(64), nullable=False, default="")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        methods = [m for m in (self.accepted_payment_methods or "").split(",") if m]
        return {
            "id": self.id,
            "name": self.name,
            "instagram": self.instagram,
            "whatsapp": self.whatsapp,
            "website": self.website,
            "observations": self.observations,
            "accepted_payment_methods": methods,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
