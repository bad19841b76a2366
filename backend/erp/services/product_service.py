# Overview: Service-layer operations for products; encapsulates business logic and database work.

"""
Product Service

MULTI-TENANT: Products are scoped to a business via business_id.

RULES:
- product_code is required and unique among the business's active products
- prices are non-negative decimals; tax_type defaults to tax_separate
- delete is soft
"""

from __future__ import annotations

from ..errors import NotFoundError
from ..extensions import db
from ..models import Product
from ..models.products import PRODUCT_TAX_TYPES
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    enforce_rules_product,
    validate_payload,
)


PRODUCT_NOT_FOUND_MESSAGE = "품목을 찾을 수 없습니다."
DUPLICATE_CODE_MESSAGE = "이미 등록된 품목코드입니다."

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "productCode", "name", "spec", "unit", "currentStock", "buyPrice",
        "sellPrice", "category", "taxType", "memo",
    },
    required_on_create={"productCode", "name"},
    strip_unknown=True,
    choices={"taxType": PRODUCT_TAX_TYPES},
)


def _ensure_unique_code(business_id: int, code: str, exclude_id: int | None = None) -> None:
    query = db.session.query(Product).filter(
        Product.business_id == business_id,
        Product.product_code == code,
        Product.is_active.is_(True),
    )
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    if query.first():
        raise ConflictError(DUPLICATE_CODE_MESSAGE)


def list_products(*, business_id: int, search: str | None = None, category: str | None = None):
    """Query of active products, newest first. search covers name, code and category."""
    query = db.session.query(Product).filter(
        Product.business_id == business_id,
        Product.is_active.is_(True),
    )
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(db.or_(
            Product.name.ilike(like),
            Product.product_code.ilike(like),
            Product.category.ilike(like),
        ))
    if category:
        query = query.filter(Product.category == category)
    return query.order_by(Product.created_at.desc(), Product.id.desc())


def get_product(*, business_id: int, product_id: int) -> Product:
    product = db.session.query(Product).filter(
        Product.id == product_id,
        Product.business_id == business_id,
        Product.is_active.is_(True),
    ).first()
    if not product:
        raise NotFoundError(PRODUCT_NOT_FOUND_MESSAGE)
    return product


def find_product_in_business(business_id: int, product_id: int | None) -> Product | None:
    """Product by id restricted to one business (active or not), or None."""
    if not product_id:
        return None
    return db.session.query(Product).filter(
        Product.id == product_id,
        Product.business_id == business_id,
    ).first()


def create_product(*, business_id: int, payload: dict, commit: bool = True) -> Product:
    """
    Raises:
        ValidationError: invalid fields or negative prices
        ConflictError: productCode already used by an active product
    """
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
    enforce_rules_product(patch)
    _ensure_unique_code(business_id, patch["product_code"])

    product = Product(business_id=business_id, is_active=True, **patch)
    db.session.add(product)
    if commit:
        db.session.commit()
    else:
        db.session.flush()
    return product


def update_product(*, business_id: int, product_id: int, payload: dict, commit: bool = True) -> Product:
    product = get_product(business_id=business_id, product_id=product_id)
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
    enforce_rules_product(patch)

    if patch.get("product_code") and patch["product_code"] != product.product_code:
        _ensure_unique_code(business_id, patch["product_code"], exclude_id=product.id)

    for key, value in patch.items():
        setattr(product, key, value)
    if commit:
        db.session.commit()
    else:
        db.session.flush()
    return product


def delete_product(*, business_id: int, product_id: int) -> None:
    """Soft delete."""
    product = get_product(business_id=business_id, product_id=product_id)
    product.is_active = False
    db.session.commit()


def find_by_name_or_code(business_id: int, term: str) -> Product | None:
    """First active product whose name or code contains term."""
    if not term:
        return None
    like = f"%{term.strip()}%"
    return db.session.query(Product).filter(
        Product.business_id == business_id,
        Product.is_active.is_(True),
        db.or_(Product.name.ilike(like), Product.product_code.ilike(like)),
    ).order_by(Product.id.asc()).first()


def category_counts(business_id: int) -> list[tuple[str | None, int]]:
    return db.session.query(Product.category, db.func.count(Product.id)).filter(
        Product.business_id == business_id,
        Product.is_active.is_(True),
    ).group_by(Product.category).all()
