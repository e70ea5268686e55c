import os

from dotenv import load_dotenv

# Values from a local .env never override the real environment
load_dotenv(override=False)


def getenv_bool(name: str, default: bool = False) -> bool:
    v = os.getenv(name)
    if v is None:
        return default
    return v.strip().lower() in {"1", "true", "yes", "on"}


def getenv_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


class Config:
    DEBUG = getenv_bool("FLASK_DEBUG", False)
    TESTING = False
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-change")

    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///minishare.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = getenv_bool("SQLALCHEMY_ECHO", False)

    # Uploads
    UPLOAD_DIR = os.getenv("UPLOAD_DIR", os.path.join(os.getcwd(), "uploads", "products"))
    MAX_IMAGE_BYTES = getenv_int("MAX_IMAGE_BYTES", 5 * 1024 * 1024)
    MAX_LISTING_IMAGES = getenv_int("MAX_LISTING_IMAGES", 5)
    MAX_POST_IMAGES = getenv_int("MAX_POST_IMAGES", 9)
    ALLOWED_IMAGE_EXTENSIONS = set(
        e.strip().lower().lstrip(".")
        for e in os.getenv("ALLOWED_IMAGE_EXTENSIONS", "jpg,jpeg,png,gif").split(",")
        if e.strip()
    )
    # Whole request cap; per-file limits are enforced by the storage layer
    MAX_CONTENT_LENGTH = getenv_int("MAX_CONTENT_LENGTH", 40 * 1024 * 1024)

    # Logging
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_JSON = getenv_bool("LOG_JSON", False)

    # App behavior
    AUTO_CREATE_DB = getenv_bool("AUTO_CREATE_DB", True)
    SEED_ADMIN = getenv_bool("SEED_ADMIN", True)

    # Admin bootstrap
    ADMIN_USERNAME = os.getenv("ADMIN_USERNAME", "admin")
    ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "admin@admin.com")
    ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "Admin123")
