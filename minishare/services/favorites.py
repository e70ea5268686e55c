"""Saved products and posts ("collections")."""

from __future__ import annotations

import logging
from typing import List

from sqlalchemy import delete, func, select
from sqlalchemy.orm import joinedload, selectinload

from ..auth import Identity
from ..errors import NotFoundError, ValidationError
from ..extensions import db, transaction
from ..models import Post, PostFavorite, Product, ProductFavorite, utcnow

logger = logging.getLogger(__name__)

KINDS = ("products", "posts")


def toggle_product_favorite(identity: Identity, product_id: int) -> bool:
    """Save or unsave a product; True when it is now saved."""
    identity.require_authenticated()
    with transaction() as session:
        if session.get(Product, product_id) is None:
            raise NotFoundError(f"Product {product_id} not found", details={"product_id": product_id})
        removed = session.execute(
            delete(ProductFavorite).where(
                ProductFavorite.product_id == product_id, ProductFavorite.user_id == identity.user_id
            )
        ).rowcount
        if not removed:
            session.add(ProductFavorite(product_id=product_id, user_id=identity.user_id, created_at=utcnow()))
    logger.debug("User %s %s product %s", identity.user_id, "unsaved" if removed else "saved", product_id)
    return not removed


def is_product_favorite(identity: Identity, product_id: int) -> bool:
    if not identity.is_authenticated:
        return False
    found = db.session.scalar(
        select(func.count(ProductFavorite.id)).where(
            ProductFavorite.product_id == product_id, ProductFavorite.user_id == identity.user_id
        )
    )
    return bool(found)


def list_favorites(identity: Identity, kind: str = "products") -> List:
    """The caller's saved products or posts, most recently saved first."""
    identity.require_authenticated()
    if kind not in KINDS:
        raise ValidationError("Unknown collection", details={"fields": {"type": kind}})
    if kind == "products":
        stmt = (
            select(Product)
            .join(ProductFavorite, ProductFavorite.product_id == Product.id)
            .where(ProductFavorite.user_id == identity.user_id)
            .options(selectinload(Product.images), joinedload(Product.seller))
            .order_by(ProductFavorite.created_at.desc(), ProductFavorite.id.desc())
        )
    else:
        stmt = (
            select(Post)
            .join(PostFavorite, PostFavorite.post_id == Post.id)
            .where(PostFavorite.user_id == identity.user_id)
            .options(joinedload(Post.author), selectinload(Post.images), selectinload(Post.comments))
            .order_by(PostFavorite.created_at.desc(), PostFavorite.id.desc())
        )
    return list(db.session.scalars(stmt).unique())
