from flask import Blueprint, jsonify, request

from ..auth import cart_key, current_identity
from ..errors import ValidationError
from ..services.cart import CartService, checkout, checkout_summary
from ..services.catalog import product_summary
from ..services.orders import order_dict

cart_bp = Blueprint("cart", __name__)


def _product_ids():
    body = request.get_json(silent=True)
    raw = body.get("product_ids") if isinstance(body, dict) else request.form.getlist("product_ids")
    if not raw:
        return None
    try:
        return [int(v) for v in raw]
    except (TypeError, ValueError):
        raise ValidationError("Invalid product ids", details={"fields": {"product_ids": raw}})


@cart_bp.get("/cart")
def view_cart():
    cart = CartService(cart_key())
    products = cart.products()
    return jsonify({"items": [product_summary(p) for p in products], "count": len(products)})


@cart_bp.post("/cart/<int:product_id>")
def add_to_cart(product_id: int):
    cart = CartService(cart_key())
    added = cart.add(product_id)
    return jsonify({"added": added, "count": cart.count()})


@cart_bp.post("/cart/<int:product_id>/remove")
def remove_from_cart(product_id: int):
    cart = CartService(cart_key())
    removed = cart.remove(product_id)
    return jsonify({"removed": removed, "count": cart.count()})


@cart_bp.post("/checkout/summary")
def summary():
    current_identity().require_authenticated()
    return jsonify(checkout_summary(CartService(cart_key()), _product_ids()))


@cart_bp.post("/checkout")
def place_orders():
    body = request.get_json(silent=True)
    address = body.get("shipping_address") if isinstance(body, dict) else request.form.get("shipping_address")
    orders = checkout(current_identity(), CartService(cart_key()), _product_ids(), address)
    return jsonify({"orders": [order_dict(o) for o in orders]}), 201
