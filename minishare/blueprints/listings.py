from flask import Blueprint, jsonify, request

from ..auth import current_identity
from ..errors import ValidationError
from ..services import catalog
from ..services import requests as request_service
from ..services.storage import ImageUpload

listings_bp = Blueprint("listings", __name__, url_prefix="/listings")


def _uploads():
    return [ImageUpload.from_file_storage(fs) for fs in request.files.getlist("images") if fs and fs.filename]


def _keep_image_ids():
    if "keep_image_ids" not in request.form:
        return None
    raw = [v for v in request.form.getlist("keep_image_ids") if v.strip()]
    try:
        return [int(v) for v in raw]
    except ValueError:
        raise ValidationError("Invalid image ids", details={"fields": {"keep_image_ids": raw}})


@listings_bp.post("")
def submit_listing():
    req = request_service.submit(current_identity(), request.form, _uploads())
    return jsonify({"request": req.to_dict()}), 201


@listings_bp.post("/<int:product_id>/edit")
def submit_edit(product_id: int):
    req = request_service.submit(
        current_identity(),
        request.form,
        _uploads(),
        original_product_id=product_id,
        keep_image_ids=_keep_image_ids(),
    )
    return jsonify({"request": req.to_dict()}), 201


@listings_bp.get("/mine")
def my_requests():
    found = request_service.list_own_requests(current_identity())
    return jsonify({"requests": [r.to_dict() for r in found]})


@listings_bp.get("/products")
def my_products():
    identity = current_identity()
    identity.require_authenticated()
    products = catalog.list_products(seller_id=identity.user_id)
    return jsonify({"products": [catalog.product_summary(p) for p in products]})
