import logging

from flask import Flask, jsonify

from .auth import load_identity
from .blueprints import register_blueprints
from .config import Config
from .errors import register_error_handlers
from .extensions import db
from .logging_config import setup_logging
from .seed import seed_admin
from .services.storage import ImageStorage


def create_app(config_object=None) -> Flask:
    app = Flask(__name__)
    app.config.from_object(config_object or Config)

    setup_logging(app)
    logger = logging.getLogger(__name__)

    db.init_app(app)
    app.extensions["minishare.storage"] = ImageStorage.from_config(app.config)

    register_error_handlers(app)
    app.before_request(load_identity)
    register_blueprints(app)

    @app.get("/health")
    def health():
        return jsonify({"status": "ok"})

    if app.config.get("AUTO_CREATE_DB"):
        with app.app_context():
            db.create_all()
            if app.config.get("SEED_ADMIN"):
                seed_admin(app)

    logger.info("MiniShare app created (db dialect=%s)", app.config["SQLALCHEMY_DATABASE_URI"].split(":", 1)[0])
    return app
