# backend/boutique/services/catalog_service.py
"""
Catalog service: products with size variants, owners and suppliers.

Products:
- SKU is unique; duplicates are a ValidationError (400)
- sizes are unique per product; aggregate stock is derived from sizes
  whenever sizes are present
- OWNER users linked to an owner record only see that owner's products
"""
from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import ExchangeItem, OrderItem, Owner, Product, ProductSize, Supplier
from ..validation import ModelValidationPolicy, coerce_int, validate_payload
from .concurrency import lock_for_update, run_in_transaction

logger = logging.getLogger(__name__)


PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({"name", "sku", "owner_id", "plus_sized", "cost_cents", "price_cents", "stock"}),
    required_on_create=frozenset({"name", "sku", "cost_cents", "price_cents"}),
    money_fields=frozenset({"cost_cents", "price_cents"}),
    ignored_fields=frozenset({"sizes"}),
)

SUPPLIER_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({"name", "instagram", "whatsapp", "website", "observations"}),
    required_on_create=frozenset({"name"}),
    ignored_fields=frozenset({"accepted_payment_methods"}),
)

SUPPLIER_PAYMENT_METHODS = ("CASH", "DEBIT", "CREDIT", "PIX", "FIADO")


# =============================================================================
# PRODUCTS
# =============================================================================

def _parse_sizes(raw) -> list[tuple[str, int]]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValidationError("sizes must be a list")

    parsed: list[tuple[str, int]] = []
    seen: set[str] = set()
    for idx, entry in enumerate(raw):
        if not isinstance(entry, dict):
            raise ValidationError(f"sizes[{idx}] must be an object")
        size = str(entry.get("size") or "").strip().upper()
        if not size:
            raise ValidationError(f"sizes[{idx}].size is required")
        if len(size) > 16:
            raise ValidationError(f"sizes[{idx}].size exceeds max length 16")
        if size in seen:
            raise ValidationError(f"Duplicate size: {size}")
        stock = coerce_int(f"sizes[{idx}].stock", entry.get("stock", 0))
        if stock < 0:
            raise ValidationError(f"sizes[{idx}].stock must be >= 0")
        seen.add(size)
        parsed.append((size, stock))
    return parsed


def _check_product_rules(patch: dict) -> None:
    if "stock" in patch and patch["stock"] is not None and patch["stock"] < 0:
        raise ValidationError("stock must be >= 0")
    if patch.get("owner_id") is not None and not db.session.get(Owner, patch["owner_id"]):
        raise NotFoundError("Owner not found")


def _ensure_unique_sku(sku: str, exclude_id: int | None = None) -> None:
    query = db.session.query(Product).filter(Product.sku == sku)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    if query.first():
        raise ValidationError("SKU already exists", details={"sku": sku})


def list_products(owner_id: int | None = None) -> list[Product]:
    query = db.session.query(Product)
    if owner_id is not None:
        query = query.filter(Product.owner_id == owner_id)
    return query.order_by(Product.name.asc(), Product.id.asc()).all()


def get_product(product_id: int, owner_id: int | None = None) -> Product:
    product = db.session.get(Product, product_id)
    if not product or (owner_id is not None and product.owner_id != owner_id):
        raise NotFoundError("Product not found")
    return product


def create_product(payload: dict) -> Product:
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
    sizes = _parse_sizes(payload.get("sizes"))
    _check_product_rules(patch)

    def _op():
        _ensure_unique_sku(patch["sku"])
        product = Product(**patch)
        for size, stock in sizes:
            product.sizes.append(ProductSize(size=size, stock=stock))
        product.recompute_stock()
        db.session.add(product)
        db.session.flush()
        return product

    product = run_in_transaction(_op)
    logger.info("Created product %s (%s)", product.id, product.sku)
    return product


def _replace_sizes(product: Product, sizes: list[tuple[str, int]]) -> None:
    wanted = dict(sizes)
    for row in list(product.sizes):
        if row.size not in wanted:
            product.sizes.remove(row)
    for size, stock in sizes:
        row = product.size_row(size)
        if row is None:
            product.sizes.append(ProductSize(size=size, stock=stock))
        else:
            row.stock = stock
    if not product.sizes:
        # Dropping every size keeps the last aggregate unless stock is sent
        return
    product.recompute_stock()


def update_product(product_id: int, payload: dict) -> Product:
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
    sizes = _parse_sizes(payload.get("sizes")) if "sizes" in payload else None
    _check_product_rules(patch)

    def _op():
        product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
        if not product:
            raise NotFoundError("Product not found")
        if "sku" in patch:
            _ensure_unique_sku(patch["sku"], exclude_id=product_id)

        for key, value in patch.items():
            setattr(product, key, value)
        if sizes is not None:
            _replace_sizes(product, sizes)
        else:
            product.recompute_stock()
        return product

    return run_in_transaction(_op)


def delete_product(product_id: int) -> None:
    """Delete a product. Refused once it appears on an order or exchange."""
    def _op():
        product = db.session.get(Product, product_id)
        if not product:
            raise NotFoundError("Product not found")
        sold = db.session.query(OrderItem.id).filter_by(product_id=product_id).first()
        exchanged = db.session.query(ExchangeItem.id).filter_by(product_id=product_id).first()
        if sold or exchanged:
            raise ConflictError("Product is referenced by orders or exchanges")
        db.session.delete(product)

    try:
        run_in_transaction(_op)
    except IntegrityError:
        raise ConflictError("Product is referenced by orders or exchanges")
    logger.info("Deleted product %s", product_id)


# =============================================================================
# OWNERS
# =============================================================================

def list_owners() -> list[Owner]:
    return db.session.query(Owner).order_by(Owner.name.asc()).all()


def create_owner(name: str) -> Owner:
    name = (name or "").strip()
    if not name:
        raise ValidationError("name is required")
    if len(name) > 128:
        raise ValidationError("name exceeds max length 128")
    if db.session.query(Owner).filter_by(name=name).first():
        raise ValidationError("Owner already exists")

    owner = Owner(name=name)
    db.session.add(owner)
    db.session.commit()
    return owner


# =============================================================================
# SUPPLIERS
# =============================================================================

def _parse_supplier_methods(raw) -> str:
    if raw is None:
        return ""
    if not isinstance(raw, list):
        raise ValidationError("accepted_payment_methods must be a list")
    methods = []
    for value in raw:
        method = str(value or "").strip().upper()
        if method not in SUPPLIER_PAYMENT_METHODS:
            raise ValidationError(
                f"Invalid payment method: {value}",
                details={"allowed": list(SUPPLIER_PAYMENT_METHODS)},
            )
        if method not in methods:
            methods.append(method)
    return ",".join(methods)


def list_suppliers() -> list[Supplier]:
    return db.session.query(Supplier).order_by(Supplier.name.asc()).all()


def get_supplier(supplier_id: int) -> Supplier:
    supplier = db.session.get(Supplier, supplier_id)
    if not supplier:
        raise NotFoundError("Supplier not found")
    return supplier


def create_supplier(payload: dict) -> Supplier:
    patch = validate_payload(model=Supplier, payload=payload, policy=SUPPLIER_POLICY, partial=False)
    supplier = Supplier(
        accepted_payment_methods=_parse_supplier_methods(payload.get("accepted_payment_methods")),
        **patch,
    )
    db.session.add(supplier)
    db.session.commit()
    return supplier


def update_supplier(supplier_id: int, payload: dict) -> Supplier:
    patch = validate_payload(model=Supplier, payload=payload, policy=SUPPLIER_POLICY, partial=True)
    supplier = get_supplier(supplier_id)
    for key, value in patch.items():
        setattr(supplier, key, value)
    if "accepted_payment_methods" in payload:
        supplier.accepted_payment_methods = _parse_supplier_methods(payload["accepted_payment_methods"])
    db.session.commit()
    return supplier


def delete_supplier(supplier_id: int) -> None:
    supplier = get_supplier(supplier_id)
    db.session.delete(supplier)
    db.session.commit()
