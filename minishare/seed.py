import logging

from sqlalchemy.exc import IntegrityError
from werkzeug.security import generate_password_hash

from .extensions import db
from .models import User

logger = logging.getLogger(__name__)


def _get_or_create(model, defaults=None, **kwargs):
    instance = db.session.scalars(db.select(model).filter_by(**kwargs)).one_or_none()
    if instance:
        return instance, False
    params = dict(kwargs)
    if defaults:
        params.update(defaults)
    instance = model(**params)
    db.session.add(instance)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        instance = db.session.scalars(db.select(model).filter_by(**kwargs)).one()
        return instance, False
    return instance, True


def seed_admin(app) -> User:
    """Make sure the configured administrator account exists and is an admin."""
    cfg = app.config
    admin, created = _get_or_create(
        User,
        username=cfg["ADMIN_USERNAME"],
        defaults={
            "email": cfg["ADMIN_EMAIL"],
            "password_hash": generate_password_hash(cfg["ADMIN_PASSWORD"]),
            "is_admin": True,
        },
    )
    if not admin.is_admin:
        admin.is_admin = True
        db.session.commit()
    if created:
        logger.info("Seeded administrator account %r", admin.username)
    return admin
