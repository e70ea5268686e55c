from flask import Blueprint, jsonify

from ..auth import current_identity
from ..services import orders as order_service

orders_bp = Blueprint("orders", __name__, url_prefix="/orders")


@orders_bp.get("")
def list_orders():
    found = order_service.list_orders(current_identity())
    return jsonify({"orders": [order_service.order_dict(o) for o in found]})


@orders_bp.post("/<int:order_id>/pay")
def pay_order(order_id: int):
    order = order_service.mark_paid(current_identity(), order_id)
    return jsonify({"order": order_service.order_dict(order)})


@orders_bp.post("/<int:order_id>/delete")
def delete_order(order_id: int):
    order_service.delete_order(current_identity(), order_id)
    return jsonify({"status": "deleted"})
