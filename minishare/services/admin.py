"""Direct catalog and account management for administrators."""

from __future__ import annotations

import logging
from typing import Any, List, Mapping

from sqlalchemy import delete, func, select, update

from ..auth import Identity
from ..errors import NotFoundError, ValidationError
from ..extensions import db, transaction
from ..models import (
    CartItem,
    Comment,
    Order,
    Post,
    PostFavorite,
    PostLike,
    Product,
    ProductComment,
    ProductFavorite,
    ProductRequest,
    User,
    utcnow,
)
from .validation import validate_listing_fields

logger = logging.getLogger(__name__)


def create_product(identity: Identity, fields: Mapping[str, Any]) -> Product:
    identity.require_admin()
    data = validate_listing_fields(fields)
    with transaction() as session:
        product = Product(**data, created_at=utcnow())
        session.add(product)
    logger.info("Admin %s created product %s", identity.user_id, product.id)
    return product


def delete_product(identity: Identity, product_id: int) -> None:
    """Remove a product with its images, orders, cart entries, favorites and reviews."""
    identity.require_admin()
    with transaction() as session:
        product = session.get(Product, product_id)
        if product is None:
            raise NotFoundError(f"Product {product_id} not found", details={"product_id": product_id})
        session.execute(delete(CartItem).where(CartItem.product_id == product_id))
        session.execute(delete(Order).where(Order.product_id == product_id))
        session.execute(delete(ProductFavorite).where(ProductFavorite.product_id == product_id))
        session.execute(delete(ProductComment).where(ProductComment.product_id == product_id))
        session.delete(product)
    logger.info("Admin %s deleted product %s", identity.user_id, product_id)


def list_users(identity: Identity) -> List[User]:
    identity.require_admin()
    return list(db.session.scalars(select(User).order_by(User.id)))


def _other_user(identity: Identity, user_id: int, action: str) -> User:
    identity.require_admin()
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError(f"User {user_id} not found", details={"user_id": user_id})
    if user.id == identity.user_id:
        raise ValidationError(f"You cannot {action} your own account")
    return user


def toggle_admin(identity: Identity, user_id: int) -> User:
    user = _other_user(identity, user_id, "change the role of")
    with transaction():
        user.is_admin = not user.is_admin
    logger.info("Admin %s set is_admin=%s on user %s", identity.user_id, user.is_admin, user_id)
    return user


def delete_user(identity: Identity, user_id: int) -> None:
    user = _other_user(identity, user_id, "delete")
    remaining = db.session.scalar(
        select(func.count(ProductRequest.id)).where(
            (ProductRequest.requested_by_id == user_id) | (ProductRequest.reviewed_by_id == user_id)
        )
    )
    if remaining:
        raise ValidationError(
            "User still has product requests; delete them first",
            details={"user_id": user_id, "requests": remaining},
        )
    with transaction() as session:
        session.execute(delete(CartItem).where(CartItem.cart_key == f"user:{user_id}"))
        session.execute(delete(Order).where(Order.user_id == user_id))
        session.execute(update(Product).where(Product.seller_id == user_id).values(seller_id=None))
        session.execute(
            update(Post)
            .where(Post.id.in_(select(PostLike.post_id).where(PostLike.user_id == user_id)), Post.like_count > 0)
            .values(like_count=Post.like_count - 1)
            .execution_options(synchronize_session=False)
        )
        session.execute(delete(PostLike).where(PostLike.user_id == user_id))
        session.execute(delete(PostFavorite).where(PostFavorite.user_id == user_id))
        session.execute(delete(ProductFavorite).where(ProductFavorite.user_id == user_id))
        session.execute(delete(ProductComment).where(ProductComment.user_id == user_id))
        session.execute(update(Comment).where(Comment.user_id == user_id).values(user_id=None))
        for post in list(session.scalars(select(Post).where(Post.author_id == user_id))):
            session.delete(post)
        session.delete(user)
    logger.info("Admin %s deleted user %s", identity.user_id, user_id)
