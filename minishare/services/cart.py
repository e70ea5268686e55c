"""
Shopping cart and checkout.

A cart is the set of ``CartItem`` rows sharing one ``cart_key``. Callers
decide the key (see ``minishare.auth.cart_key``) and pass it in; nothing here
reads the HTTP session.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Iterable, List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.orm import selectinload

from ..auth import Identity
from ..errors import NotFoundError, ValidationError
from ..extensions import db, transaction
from ..models import CartItem, Order, OrderStatus, Product, utcnow
from .catalog import product_summary

logger = logging.getLogger(__name__)


class CartService:
    def __init__(self, cart_key: str):
        if not cart_key:
            raise ValueError("cart_key is required")
        self.cart_key = cart_key

    def items(self) -> List[CartItem]:
        stmt = (
            select(CartItem)
            .where(CartItem.cart_key == self.cart_key)
            .options(selectinload(CartItem.product).selectinload(Product.images))
            .order_by(CartItem.added_at, CartItem.id)
        )
        return list(db.session.scalars(stmt))

    def products(self) -> List[Product]:
        return [item.product for item in self.items()]

    def count(self) -> int:
        return db.session.scalar(select(func.count(CartItem.id)).where(CartItem.cart_key == self.cart_key)) or 0

    def contains(self, product_id: int) -> bool:
        return self._find(product_id) is not None

    def add(self, product_id: int) -> bool:
        """Put a product in the cart. Returns False when it was already there."""
        if db.session.get(Product, product_id) is None:
            raise NotFoundError(f"Product {product_id} not found", details={"product_id": product_id})
        if self.contains(product_id):
            return False
        with transaction() as session:
            session.add(CartItem(cart_key=self.cart_key, product_id=product_id, added_at=utcnow()))
        return True

    def remove(self, product_id: int) -> bool:
        item = self._find(product_id)
        if item is None:
            return False
        with transaction() as session:
            session.delete(item)
        return True

    def clear(self) -> int:
        with transaction() as session:
            result = session.execute(delete(CartItem).where(CartItem.cart_key == self.cart_key))
        return result.rowcount or 0

    def _find(self, product_id: int) -> Optional[CartItem]:
        return db.session.scalars(
            select(CartItem).filter_by(cart_key=self.cart_key, product_id=product_id)
        ).first()


def _selected(cart: CartService, product_ids: Optional[Iterable[int]]) -> List[Product]:
    products = cart.products()
    if product_ids:
        wanted = {int(pid) for pid in product_ids}
        products = [p for p in products if p.id in wanted]
    return products


def checkout_summary(cart: CartService, product_ids: Optional[Iterable[int]] = None) -> dict:
    products = _selected(cart, product_ids)
    total_price = sum((Decimal(p.price) for p in products), Decimal("0.00"))
    total_shipping = sum((Decimal(p.shipping_fee) for p in products), Decimal("0.00"))
    return {
        "products": [product_summary(p) for p in products],
        "total_price": f"{total_price:.2f}",
        "total_shipping_fee": f"{total_shipping:.2f}",
        "grand_total": f"{total_price + total_shipping:.2f}",
    }


def checkout(
    identity: Identity,
    cart: CartService,
    product_ids: Optional[Iterable[int]] = None,
    shipping_address: Optional[str] = None,
) -> List[Order]:
    """Turn the selected cart items (all of them by default) into pending orders."""
    identity.require_authenticated()
    products = _selected(cart, product_ids)
    if not products:
        raise ValidationError("Nothing to check out", details={"fields": {"product_ids": "no matching cart items"}})
    address = (shipping_address or "").strip() or None
    if address and len(address) > 500:
        raise ValidationError("Invalid shipping address", details={"fields": {"shipping_address": "too long"}})

    with transaction() as session:
        orders = [
            Order(
                user_id=identity.user_id,
                product_id=p.id,
                status=OrderStatus.PENDING.value,
                shipping_address=address,
                created_at=utcnow(),
            )
            for p in products
        ]
        session.add_all(orders)
        session.execute(
            delete(CartItem).where(
                CartItem.cart_key == cart.cart_key,
                CartItem.product_id.in_([p.id for p in products]),
            )
        )
    logger.info("User %s checked out %d product(s)", identity.user_id, len(orders))
    return orders
