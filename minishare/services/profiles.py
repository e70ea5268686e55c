"""Public and personal user profiles."""

from __future__ import annotations

from ..auth import Identity
from ..errors import NotFoundError
from ..extensions import db
from ..models import User
from . import catalog, favorites, posts
from . import requests as request_service


def profile(identity: Identity, user_id: int) -> dict:
    """A user's posts and live products.

    Viewing your own profile also returns your listing requests and saved
    items.
    """
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError(f"User {user_id} not found", details={"user_id": user_id})

    data = {
        "user": user.to_ref(),
        "posts": [p.to_dict() for p in posts.list_user_posts(user_id)],
        "products": [catalog.product_summary(p) for p in catalog.list_products(seller_id=user_id)],
    }
    if identity.user_id == user_id:
        data["user"] = user.to_dict()
        data["requests"] = [r.to_dict() for r in request_service.list_own_requests(identity)]
        data["favorites"] = {
            "products": [catalog.product_summary(p) for p in favorites.list_favorites(identity, "products")],
            "posts": [p.to_dict() for p in favorites.list_favorites(identity, "posts")],
        }
    return data
