"""
Session login and the per-request ``Identity``.

The session cookie only carries the user id. ``load_identity`` turns it into
an ``Identity`` on ``g`` before each request; service functions receive that
object explicitly and call ``require_admin()`` / ``require_authenticated()``
themselves, so they can be exercised without an HTTP request.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass, field
from typing import FrozenSet, Optional

from flask import Blueprint, g, jsonify, request, session
from werkzeug.security import check_password_hash, generate_password_hash

from .errors import UnauthenticatedError, UnauthorizedError, ValidationError
from .extensions import db
from .models import User

logger = logging.getLogger(__name__)

ADMIN = "admin"

auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


@dataclass(frozen=True)
class Identity:
    user_id: Optional[int] = None
    roles: FrozenSet[str] = field(default_factory=frozenset)

    @classmethod
    def anonymous(cls) -> "Identity":
        return cls()

    @classmethod
    def for_user(cls, user: User) -> "Identity":
        return cls(user_id=user.id, roles=frozenset({ADMIN}) if user.is_admin else frozenset())

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    @property
    def is_admin(self) -> bool:
        return ADMIN in self.roles

    def require_authenticated(self) -> None:
        if not self.is_authenticated:
            raise UnauthenticatedError()

    def require_admin(self) -> None:
        self.require_authenticated()
        if not self.is_admin:
            raise UnauthorizedError("Administrator access required")


def load_identity() -> None:
    user_id = session.get("user_id")
    g.user = db.session.get(User, user_id) if user_id else None
    if user_id and g.user is None:
        # Account was deleted under a live session
        session.pop("user_id", None)
    g.identity = Identity.for_user(g.user) if g.user else Identity.anonymous()


def current_identity() -> Identity:
    return getattr(g, "identity", None) or Identity.anonymous()


def cart_key() -> str:
    """Key of the caller's cart: the account when logged in, else a session token."""
    identity = current_identity()
    if identity.is_authenticated:
        return f"user:{identity.user_id}"
    token = session.get("cart_token")
    if not token:
        token = secrets.token_hex(16)
        session["cart_token"] = token
    return f"anon:{token}"


def _credentials():
    body = request.get_json(silent=True) or request.form
    return (body.get("username") or "").strip(), body.get("password") or "", body


@auth_bp.post("/register")
def register():
    username, password, body = _credentials()
    email = (body.get("email") or "").strip() or None
    errors = {}
    if not username:
        errors["username"] = "Username is required"
    elif len(username) > 80:
        errors["username"] = "Username must be at most 80 characters"
    if len(password) < 6:
        errors["password"] = "Password must be at least 6 characters"
    if errors:
        raise ValidationError("Invalid registration", details={"fields": errors})
    if db.session.scalars(db.select(User).filter_by(username=username)).first():
        raise ValidationError("Username already exists", details={"fields": {"username": "taken"}})
    if email and db.session.scalars(db.select(User).filter_by(email=email)).first():
        raise ValidationError("Email already registered", details={"fields": {"email": "taken"}})

    user = User(username=username, email=email, password_hash=generate_password_hash(password))
    db.session.add(user)
    db.session.commit()
    logger.info("Registered user %s (%s)", user.id, username)
    return jsonify({"user": user.to_dict()}), 201


@auth_bp.post("/login")
def login():
    username, password, _ = _credentials()
    user = db.session.scalars(db.select(User).filter_by(username=username)).first()
    if not user or not check_password_hash(user.password_hash, password):
        logger.info("Failed login for %r", username)
        raise UnauthenticatedError("Invalid credentials")
    session["user_id"] = user.id
    logger.info("User %s logged in", user.id)
    return jsonify({"user": user.to_dict()})


@auth_bp.post("/logout")
def logout():
    session.pop("user_id", None)
    return jsonify({"status": "logged_out"})


@auth_bp.get("/me")
def me():
    current_identity().require_authenticated()
    return jsonify({"user": g.user.to_dict(), "roles": sorted(g.identity.roles)})
