from flask import Blueprint, jsonify, request

from ..auth import current_identity
from ..services import catalog, favorites
from ..services.profiles import profile
from ..services.search import search

profiles_bp = Blueprint("profiles", __name__)


@profiles_bp.get("/users/<int:user_id>")
def user_profile(user_id: int):
    return jsonify(profile(current_identity(), user_id))


@profiles_bp.get("/profile")
def own_profile():
    identity = current_identity()
    identity.require_authenticated()
    return jsonify(profile(identity, identity.user_id))


@profiles_bp.get("/favorites")
def list_favorites():
    kind = request.args.get("type", "products")
    found = favorites.list_favorites(current_identity(), kind)
    if kind == "products":
        items = [catalog.product_summary(p) for p in found]
    else:
        items = [p.to_dict() for p in found]
    return jsonify({"type": kind, "items": items})


@profiles_bp.get("/search")
def search_all():
    return jsonify(
        search(
            request.args.get("q", ""),
            kind=request.args.get("type", "all"),
            page=request.args.get("page", 1, type=int),
            page_size=request.args.get("page_size", 10, type=int),
        )
    )
