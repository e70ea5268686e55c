from flask import Blueprint, jsonify, request

from ..auth import current_identity
from ..services import admin as admin_service
from ..services import catalog

admin_bp = Blueprint("admin", __name__, url_prefix="/admin")


@admin_bp.get("/products")
def products_list():
    current_identity().require_admin()
    return jsonify({"products": [catalog.product_summary(p) for p in catalog.list_products()]})


@admin_bp.post("/products")
def products_create():
    payload = request.get_json(silent=True) or request.form
    product = admin_service.create_product(current_identity(), payload)
    return jsonify({"product": product.to_dict()}), 201


@admin_bp.post("/products/<int:product_id>/delete")
def products_delete(product_id: int):
    admin_service.delete_product(current_identity(), product_id)
    return jsonify({"status": "deleted"})


@admin_bp.get("/users")
def users_list():
    users = admin_service.list_users(current_identity())
    return jsonify({"users": [u.to_dict() for u in users]})


@admin_bp.post("/users/<int:user_id>/toggle-admin")
def users_toggle_admin(user_id: int):
    user = admin_service.toggle_admin(current_identity(), user_id)
    return jsonify({"user": user.to_dict()})


@admin_bp.post("/users/<int:user_id>/delete")
def users_delete(user_id: int):
    admin_service.delete_user(current_identity(), user_id)
    return jsonify({"status": "deleted"})
