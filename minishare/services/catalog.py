from __future__ import annotations

import logging
from typing import Any, List, Mapping, Optional

from sqlalchemy import or_, select
from sqlalchemy.orm import joinedload, selectinload

from ..auth import Identity
from ..errors import NotFoundError, UnauthorizedError
from ..extensions import db, transaction
from ..models import Product, ProductComment, utcnow
from .images import main_image_url
from .validation import PRODUCT_COMMENT_MAX_LENGTH, validate_comment, validate_rating

logger = logging.getLogger(__name__)


def product_summary(product: Product) -> dict:
    data = product.to_dict(with_images=False)
    data["main_image_url"] = main_image_url(product)
    return data


def list_products(seller_id: int | None = None, q: Optional[str] = None) -> List[Product]:
    """Products newest first, optionally one seller's or matching ``q`` in name or description."""
    stmt = select(Product).options(selectinload(Product.images), joinedload(Product.seller))
    if seller_id is not None:
        stmt = stmt.where(Product.seller_id == seller_id)
    q = (q or "").strip()
    if q:
        like = f"%{q}%"
        stmt = stmt.where(or_(Product.name.ilike(like), Product.description.ilike(like)))
    stmt = stmt.order_by(Product.created_at.desc(), Product.id.desc())
    return list(db.session.scalars(stmt).unique())


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError(f"Product {product_id} not found", details={"product_id": product_id})
    return product


def list_product_comments(product_id: int) -> List[ProductComment]:
    get_product(product_id)
    stmt = (
        select(ProductComment)
        .where(ProductComment.product_id == product_id)
        .options(joinedload(ProductComment.user))
        .order_by(ProductComment.created_at.desc(), ProductComment.id.desc())
    )
    return list(db.session.scalars(stmt))


def add_product_comment(identity: Identity, product_id: int, fields: Mapping[str, Any]) -> ProductComment:
    identity.require_authenticated()
    content = validate_comment(fields, max_length=PRODUCT_COMMENT_MAX_LENGTH)
    rating = validate_rating(fields.get("rating"))
    get_product(product_id)
    with transaction() as session:
        comment = ProductComment(
            product_id=product_id,
            user_id=identity.user_id,
            rating=rating,
            content=content,
            created_at=utcnow(),
        )
        session.add(comment)
    logger.info("User %s reviewed product %s (%d/5)", identity.user_id, product_id, rating)
    return comment


def delete_product_comment(identity: Identity, comment_id: int) -> None:
    identity.require_authenticated()
    comment = db.session.get(ProductComment, comment_id)
    if comment is None:
        raise NotFoundError(f"Comment {comment_id} not found", details={"comment_id": comment_id})
    if comment.user_id != identity.user_id and not identity.is_admin:
        raise UnauthorizedError("You can only delete your own comments")
    with transaction() as session:
        session.delete(comment)
