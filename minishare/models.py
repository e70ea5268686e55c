from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import NamedTuple, Optional

from .extensions import db


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _money(value: Optional[Decimal]) -> Optional[str]:
    return None if value is None else f"{Decimal(value):.2f}"


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class ShippingMethod(str, Enum):
    EXPRESS = "express"
    MEETUP = "meetup"
    FREE_SHIPPING = "free_shipping"


class RequestStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class OrderStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False, index=True)
    email = db.Column(db.String(255), unique=True, nullable=True)
    password_hash = db.Column(db.String(255), nullable=False)
    is_admin = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<User {self.username}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "is_admin": bool(self.is_admin),
            "created_at": _iso(self.created_at),
        }

    def to_ref(self) -> dict:
        return {"id": self.id, "username": self.username}


class ListingFieldsMixin:
    """Columns shared by a live product and a request to list or edit one."""

    name = db.Column(db.String(100), nullable=False)
    price = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    description = db.Column(db.Text, nullable=True)
    shipping_time_hours = db.Column(db.Integer, nullable=False, default=24)
    shipping_method = db.Column(db.String(20), nullable=False, default=ShippingMethod.EXPRESS.value)
    shipping_fee = db.Column(db.Numeric(10, 2), nullable=False, default=0)

    def listing_fields(self) -> dict:
        return {
            "name": self.name,
            "price": self.price,
            "description": self.description,
            "shipping_time_hours": self.shipping_time_hours,
            "shipping_method": self.shipping_method,
            "shipping_fee": self.shipping_fee,
        }

    def listing_fields_dict(self) -> dict:
        return {
            "name": self.name,
            "price": _money(self.price),
            "description": self.description,
            "shipping_time_hours": self.shipping_time_hours,
            "shipping_method": self.shipping_method,
            "shipping_fee": _money(self.shipping_fee),
        }


class Product(ListingFieldsMixin, db.Model):
    __tablename__ = "products"

    id = db.Column(db.Integer, primary_key=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False, index=True)
    seller_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    seller = db.relationship("User")
    images = db.relationship(
        "ProductImage",
        back_populates="product",
        order_by=lambda: [ProductImage.sort_order, ProductImage.id],
        cascade="all",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Product {self.id} {self.name}>"

    def to_dict(self, with_images: bool = True) -> dict:
        data = {"id": self.id, **self.listing_fields_dict(), "created_at": _iso(self.created_at)}
        data["seller"] = self.seller.to_ref() if self.seller else None
        if with_images:
            data["images"] = [img.to_dict() for img in self.images]
        return data


class ImageOwner(NamedTuple):
    kind: str  # "product" | "request"
    id: int


class ProductImage(db.Model):
    __tablename__ = "product_images"

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="CASCADE"), nullable=True, index=True)
    product_request_id = db.Column(
        db.Integer, db.ForeignKey("product_requests.id", ondelete="CASCADE"), nullable=True, index=True
    )
    image_url = db.Column(db.String(255), nullable=False)
    is_main = db.Column(db.Boolean, default=False, nullable=False)
    sort_order = db.Column(db.Integer, default=0, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    product = db.relationship("Product", back_populates="images")
    product_request = db.relationship("ProductRequest", back_populates="images")

    __table_args__ = (
        db.CheckConstraint(
            "(product_id IS NULL) <> (product_request_id IS NULL)",
            name="ck_product_images_single_owner",
        ),
    )

    @property
    def owner(self) -> Optional[ImageOwner]:
        if self.product_id is not None and self.product_request_id is None:
            return ImageOwner("product", self.product_id)
        if self.product_request_id is not None and self.product_id is None:
            return ImageOwner("request", self.product_request_id)
        return None

    def __repr__(self) -> str:
        return f"<ProductImage {self.id} owner={self.owner}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "image_url": self.image_url,
            "is_main": bool(self.is_main),
            "sort_order": self.sort_order,
        }


class ProductRequest(ListingFieldsMixin, db.Model):
    __tablename__ = "product_requests"

    id = db.Column(db.Integer, primary_key=True)
    status = db.Column(db.String(20), default=RequestStatus.PENDING.value, nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False, index=True)
    reviewed_at = db.Column(db.DateTime, nullable=True)
    review_comment = db.Column(db.Text, nullable=True)
    requested_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    reviewed_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    # No FK: an edit request outlives its target and is reported as not found at review
    original_product_id = db.Column(db.Integer, nullable=True, index=True)

    requested_by = db.relationship("User", foreign_keys=[requested_by_id])
    reviewed_by = db.relationship("User", foreign_keys=[reviewed_by_id])
    original_product = db.relationship(
        "Product",
        primaryjoin="foreign(ProductRequest.original_product_id) == Product.id",
        viewonly=True,
    )
    images = db.relationship(
        "ProductImage",
        back_populates="product_request",
        order_by=lambda: [ProductImage.sort_order, ProductImage.id],
        cascade="all",
        passive_deletes=True,
    )

    @property
    def is_edit(self) -> bool:
        return self.original_product_id is not None

    @property
    def is_pending(self) -> bool:
        return self.status == RequestStatus.PENDING.value

    def __repr__(self) -> str:
        return f"<ProductRequest {self.id} {self.status}>"

    def to_dict(self) -> dict:
        original = self.original_product
        return {
            "id": self.id,
            **self.listing_fields_dict(),
            "status": self.status,
            "kind": "edit" if self.is_edit else "listing",
            "created_at": _iso(self.created_at),
            "reviewed_at": _iso(self.reviewed_at),
            "review_comment": self.review_comment,
            "requested_by": self.requested_by.to_ref() if self.requested_by else None,
            "reviewed_by": self.reviewed_by.to_ref() if self.reviewed_by else None,
            "original_product_id": self.original_product_id,
            "original_product": original.to_dict(with_images=False) if original else None,
            "images": [img.to_dict() for img in self.images],
        }


class CartItem(db.Model):
    __tablename__ = "cart_items"

    id = db.Column(db.Integer, primary_key=True)
    cart_key = db.Column(db.String(64), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    added_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    product = db.relationship("Product")

    __table_args__ = (db.UniqueConstraint("cart_key", "product_id", name="uq_cart_items_cart_product"),)


class Order(db.Model):
    __tablename__ = "orders"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    status = db.Column(db.String(20), default=OrderStatus.PENDING.value, nullable=False)
    shipping_address = db.Column(db.String(500), nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False, index=True)

    user = db.relationship("User")
    product = db.relationship("Product")

    def __repr__(self) -> str:
        return f"<Order {self.id} {self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "status": self.status,
            "shipping_address": self.shipping_address,
            "created_at": _iso(self.created_at),
            "product": self.product.to_dict(with_images=False) if self.product else None,
        }


class Post(db.Model):
    __tablename__ = "posts"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(100), nullable=False)
    content = db.Column(db.Text, nullable=False)
    author_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False, index=True)
    like_count = db.Column(db.Integer, default=0, nullable=False)

    author = db.relationship("User")
    images = db.relationship(
        "PostImage",
        back_populates="post",
        order_by=lambda: [PostImage.sort_order, PostImage.id],
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    comments = db.relationship(
        "Comment",
        back_populates="post",
        order_by=lambda: [Comment.created_at.desc(), Comment.id.desc()],
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Post {self.id} {self.title}>"

    @property
    def main_image_url(self) -> Optional[str]:
        for img in self.images:
            if img.is_main:
                return img.url
        return self.images[0].url if self.images else None

    def to_dict(self, with_comments: bool = False) -> dict:
        data = {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "author": self.author.to_ref() if self.author else None,
            "created_at": _iso(self.created_at),
            "like_count": self.like_count,
            "comment_count": len(self.comments),
            "main_image_url": self.main_image_url,
            "images": [img.to_dict() for img in self.images],
        }
        if with_comments:
            data["comments"] = [c.to_dict() for c in self.comments]
        return data


class PostImage(db.Model):
    __tablename__ = "post_images"

    id = db.Column(db.Integer, primary_key=True)
    post_id = db.Column(db.Integer, db.ForeignKey("posts.id", ondelete="CASCADE"), nullable=False, index=True)
    url = db.Column(db.String(255), nullable=False)
    is_main = db.Column(db.Boolean, default=False, nullable=False)
    sort_order = db.Column(db.Integer, default=0, nullable=False)

    post = db.relationship("Post", back_populates="images")

    def to_dict(self) -> dict:
        return {"id": self.id, "url": self.url, "is_main": bool(self.is_main), "sort_order": self.sort_order}


class Comment(db.Model):
    """A comment on a post. Anonymous visitors may comment under a display name."""

    __tablename__ = "comments"

    id = db.Column(db.Integer, primary_key=True)
    post_id = db.Column(db.Integer, db.ForeignKey("posts.id", ondelete="CASCADE"), nullable=False, index=True)
    author_name = db.Column(db.String(50), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    content = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    post = db.relationship("Post", back_populates="comments")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "post_id": self.post_id,
            "author_name": self.author_name,
            "user_id": self.user_id,
            "content": self.content,
            "created_at": _iso(self.created_at),
        }


class PostLike(db.Model):
    __tablename__ = "post_likes"

    id = db.Column(db.Integer, primary_key=True)
    post_id = db.Column(db.Integer, db.ForeignKey("posts.id", ondelete="CASCADE"), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    __table_args__ = (db.UniqueConstraint("post_id", "user_id", name="uq_post_likes_post_user"),)


class PostFavorite(db.Model):
    __tablename__ = "post_favorites"

    id = db.Column(db.Integer, primary_key=True)
    post_id = db.Column(db.Integer, db.ForeignKey("posts.id", ondelete="CASCADE"), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    post = db.relationship("Post")

    __table_args__ = (db.UniqueConstraint("post_id", "user_id", name="uq_post_favorites_post_user"),)


class ProductFavorite(db.Model):
    __tablename__ = "product_favorites"

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    product = db.relationship("Product")

    __table_args__ = (db.UniqueConstraint("product_id", "user_id", name="uq_product_favorites_product_user"),)


class ProductComment(db.Model):
    """A rated review left on a product by a logged-in user."""

    __tablename__ = "product_comments"

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    rating = db.Column(db.Integer, default=5, nullable=False)
    content = db.Column(db.String(1000), nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    user = db.relationship("User")

    __table_args__ = (db.CheckConstraint("rating BETWEEN 1 AND 5", name="ck_product_comments_rating"),)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "user": self.user.to_ref() if self.user else None,
            "rating": self.rating,
            "content": self.content,
            "created_at": _iso(self.created_at),
        }
