from __future__ import annotations

import logging
from typing import List

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from ..auth import Identity
from ..errors import NotFoundError, UnauthorizedError
from ..extensions import db, transaction
from ..models import Order, OrderStatus, Product
from .images import main_image_url

logger = logging.getLogger(__name__)


def order_dict(order: Order) -> dict:
    data = order.to_dict()
    data["main_image_url"] = main_image_url(order.product) if order.product else None
    return data


def list_orders(identity: Identity) -> List[Order]:
    identity.require_authenticated()
    stmt = (
        select(Order)
        .where(Order.user_id == identity.user_id)
        .options(selectinload(Order.product).selectinload(Product.images))
        .order_by(Order.created_at.desc(), Order.id.desc())
    )
    return list(db.session.scalars(stmt))


def _owned(identity: Identity, order_id: int) -> Order:
    identity.require_authenticated()
    order = db.session.get(Order, order_id)
    if order is None:
        raise NotFoundError(f"Order {order_id} not found", details={"order_id": order_id})
    if order.user_id != identity.user_id and not identity.is_admin:
        raise UnauthorizedError("Not your order")
    return order


def mark_paid(identity: Identity, order_id: int) -> Order:
    order = _owned(identity, order_id)
    with transaction():
        order.status = OrderStatus.PAID.value
    logger.info("Order %s marked paid by user %s", order_id, identity.user_id)
    return order


def delete_order(identity: Identity, order_id: int) -> None:
    order = _owned(identity, order_id)
    with transaction() as session:
        session.delete(order)
    logger.info("Order %s deleted by user %s", order_id, identity.user_id)
