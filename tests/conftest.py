from __future__ import annotations

import io
from decimal import Decimal

import pytest
from werkzeug.security import generate_password_hash

from minishare import create_app
from minishare.auth import Identity
from minishare.config import Config
from minishare.extensions import db
from minishare.models import Product, ProductImage, User
from minishare.services.storage import ImageUpload


class TestConfig(Config):
    __test__ = False

    TESTING = True
    DEBUG = False
    SECRET_KEY = "test-secret"
    SQLALCHEMY_ECHO = False
    AUTO_CREATE_DB = False
    SEED_ADMIN = False
    LOG_LEVEL = "WARNING"
    LOG_JSON = False
    MAX_IMAGE_BYTES = 1024
    MAX_LISTING_IMAGES = 5
    MAX_POST_IMAGES = 9
    ALLOWED_IMAGE_EXTENSIONS = {"jpg", "jpeg", "png", "gif"}


PASSWORD = "secret123"


@pytest.fixture
def app(tmp_path):
    cfg = type(
        "TestConfig",
        (TestConfig,),
        {
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'minishare.db'}",
            "UPLOAD_DIR": str(tmp_path / "uploads"),
        },
    )
    app = create_app(cfg)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def users(app):
    admin = User(username="admin", email="admin@example.com", password_hash=generate_password_hash(PASSWORD), is_admin=True)
    seller = User(username="seller", email="seller@example.com", password_hash=generate_password_hash(PASSWORD))
    buyer = User(username="buyer", email="buyer@example.com", password_hash=generate_password_hash(PASSWORD))
    db.session.add_all([admin, seller, buyer])
    db.session.commit()
    return {"admin": admin, "seller": seller, "buyer": buyer}


@pytest.fixture
def admin_identity(users):
    return Identity.for_user(users["admin"])


@pytest.fixture
def seller_identity(users):
    return Identity.for_user(users["seller"])


@pytest.fixture
def buyer_identity(users):
    return Identity.for_user(users["buyer"])


def upload(name: str = "a.jpg", size: int = 32) -> ImageUpload:
    return ImageUpload(filename=name, content=b"\xff" * size)


def file_field(name: str = "a.jpg", size: int = 32):
    return (io.BytesIO(b"\xff" * size), name)


def listing_fields(**overrides) -> dict:
    fields = {
        "name": "Desk Lamp",
        "price": "29.90",
        "description": "Warm light, barely used",
        "shipping_time_hours": "24",
        "shipping_method": "meetup",
        "shipping_fee": "0",
    }
    fields.update(overrides)
    return fields


def make_product(seller: User | None = None, name: str = "Bike", image_urls=("/images/products/x-1.jpg",)) -> Product:
    product = Product(
        name=name,
        price=Decimal("120.00"),
        shipping_time_hours=48,
        shipping_method="express",
        shipping_fee=Decimal("5.00"),
        seller=seller,
    )
    for i, url in enumerate(image_urls):
        product.images.append(ProductImage(image_url=url, is_main=i == 0, sort_order=i))
    db.session.add(product)
    db.session.commit()
    return product


def login(client, username: str):
    resp = client.post("/auth/login", json={"username": username, "password": PASSWORD})
    assert resp.status_code == 200, resp.get_json()
    return resp
