from flask import Blueprint, jsonify, request

from ..auth import current_identity
from ..services import requests as request_service

moderation_bp = Blueprint("moderation", __name__, url_prefix="/requests")


def _outcome(outcome):
    body = {"processed": outcome.processed, "message": outcome.message}
    if outcome.processed and outcome.product is not None:
        body["product"] = outcome.product.to_dict()
    return jsonify(body)


@moderation_bp.get("")
def list_requests():
    status = request.args.get("status") or None
    found = request_service.list_requests(current_identity(), status=status)
    return jsonify({"requests": [r.to_dict() for r in found]})


@moderation_bp.get("/<int:request_id>")
def request_detail(request_id: int):
    req = request_service.get_request(current_identity(), request_id)
    return jsonify({"request": req.to_dict()})


@moderation_bp.post("/<int:request_id>/approve")
def approve_request(request_id: int):
    return _outcome(request_service.approve(current_identity(), request_id))


@moderation_bp.post("/<int:request_id>/reject")
def reject_request(request_id: int):
    body = request.get_json(silent=True) or request.form
    comment = body.get("reviewComment", body.get("review_comment"))
    return _outcome(request_service.reject(current_identity(), request_id, comment))


@moderation_bp.post("/<int:request_id>/delete")
def delete_request(request_id: int):
    request_service.delete(current_identity(), request_id)
    return jsonify({"status": "deleted"})
