from flask import Flask

from ..auth import auth_bp
from .admin import admin_bp
from .cart import cart_bp
from .catalog import catalog_bp
from .listings import listings_bp
from .moderation import moderation_bp
from .orders import orders_bp
from .posts import posts_bp
from .profiles import profiles_bp


def register_blueprints(app: Flask) -> None:
    app.register_blueprint(auth_bp)
    app.register_blueprint(catalog_bp)
    app.register_blueprint(listings_bp)
    app.register_blueprint(moderation_bp)
    app.register_blueprint(cart_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(posts_bp)
    app.register_blueprint(profiles_bp)
    app.register_blueprint(admin_bp)
