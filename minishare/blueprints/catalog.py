from flask import Blueprint, abort, jsonify, request, send_from_directory

from ..auth import current_identity
from ..services import catalog, favorites
from ..services.images import main_image_url
from ..services.storage import get_storage

catalog_bp = Blueprint("catalog", __name__)


@catalog_bp.get("/products")
def list_products():
    products = catalog.list_products(q=request.args.get("q"))
    return jsonify({"products": [catalog.product_summary(p) for p in products]})


@catalog_bp.get("/products/<int:product_id>")
def product_detail(product_id: int):
    product = catalog.get_product(product_id)
    data = product.to_dict()
    data["main_image_url"] = main_image_url(product)
    return jsonify({"product": data, "favorited": favorites.is_product_favorite(current_identity(), product_id)})


@catalog_bp.post("/products/<int:product_id>/favorite")
def toggle_favorite(product_id: int):
    return jsonify({"favorited": favorites.toggle_product_favorite(current_identity(), product_id)})


@catalog_bp.get("/products/<int:product_id>/comments")
def product_comments(product_id: int):
    return jsonify({"comments": [c.to_dict() for c in catalog.list_product_comments(product_id)]})


@catalog_bp.post("/products/<int:product_id>/comments")
def add_product_comment(product_id: int):
    body = request.get_json(silent=True)
    fields = body if isinstance(body, dict) else request.form
    comment = catalog.add_product_comment(current_identity(), product_id, fields)
    return jsonify({"comment": comment.to_dict()}), 201


@catalog_bp.post("/products/comments/<int:comment_id>/delete")
def delete_product_comment(comment_id: int):
    catalog.delete_product_comment(current_identity(), comment_id)
    return jsonify({"status": "deleted"})


def _serve_image(name: str):
    storage = get_storage()
    if storage.path_for(name) is None:
        abort(404)
    return send_from_directory(storage.upload_dir, name)


@catalog_bp.get("/images/products/<name>")
def product_image(name: str):
    return _serve_image(name)


@catalog_bp.get("/images/posts/<name>")
def post_image(name: str):
    return _serve_image(name)
