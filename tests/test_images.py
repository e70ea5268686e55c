import pytest
from sqlalchemy.exc import IntegrityError

from conftest import make_product
from minishare.errors import InvariantViolation
from minishare.extensions import db
from minishare.models import ImageOwner, Product, ProductImage, ProductRequest
from minishare.services import images as image_resolver


def new_request(user, name="Desk Lamp"):
    req = ProductRequest(name=name, price=10, requested_by=user)
    db.session.add(req)
    db.session.flush()
    return req


def test_stage_marks_first_as_main(app, users):
    req = new_request(users["seller"])
    staged = image_resolver.stage(req, ["/a.jpg", "/b.jpg", "/c.jpg"])
    db.session.commit()

    assert [img.is_main for img in staged] == [True, False, False]
    assert [img.sort_order for img in staged] == [0, 1, 2]
    assert all(img.owner == ImageOwner("request", req.id) for img in staged)


def test_reparent_moves_ownership(app, users):
    req = new_request(users["seller"])
    image_resolver.stage(req, ["/a.jpg", "/b.jpg"])
    db.session.flush()
    product = Product(name="Desk Lamp", price=10)
    db.session.add(product)
    db.session.flush()

    moved = image_resolver.reparent(req.images, req.id, product)
    db.session.commit()

    assert len(moved) == 2
    assert all(img.owner == ImageOwner("product", product.id) for img in moved)
    assert req.images == []
    assert [img.image_url for img in product.images] == ["/a.jpg", "/b.jpg"]


def test_reparent_refuses_foreign_images(app, users):
    req = new_request(users["seller"])
    other = new_request(users["seller"], name="Other")
    image_resolver.stage(other, ["/x.jpg"])
    db.session.flush()
    product = Product(name="Desk Lamp", price=10)
    db.session.add(product)
    db.session.flush()

    with pytest.raises(InvariantViolation):
        image_resolver.reparent(other.images, req.id, product)


def test_reparent_refuses_published_images(app, users):
    product = make_product(users["seller"])
    req = new_request(users["seller"])

    with pytest.raises(InvariantViolation):
        image_resolver.reparent(product.images, req.id, product)


def test_copy_to_request_leaves_originals(app, users):
    product = make_product(users["seller"], image_urls=("/p1.jpg", "/p2.jpg"))
    originals = list(product.images)
    req = new_request(users["seller"])

    copies = image_resolver.copy_to_request(originals, req)
    db.session.commit()

    assert [c.image_url for c in copies] == ["/p1.jpg", "/p2.jpg"]
    assert [c.is_main for c in copies] == [True, False]
    assert all(c.owner.kind == "request" for c in copies)
    assert all(o.owner == ImageOwner("product", product.id) for o in originals)
    assert len(product.images) == 2


def test_detach_all_removes_rows(app, users):
    product = make_product(users["seller"], image_urls=("/p1.jpg", "/p2.jpg"))

    assert image_resolver.detach_all(product) == 2
    db.session.commit()

    assert db.session.scalars(db.select(ProductImage)).all() == []


def test_normalize_order_and_main_image(app, users):
    product = make_product(users["seller"], image_urls=("/p1.jpg", "/p2.jpg", "/p3.jpg"))
    images = list(reversed(product.images))

    image_resolver.normalize_order(images)
    db.session.commit()
    db.session.expire(product, ["images"])

    assert [img.image_url for img in product.images] == ["/p3.jpg", "/p2.jpg", "/p1.jpg"]
    assert image_resolver.main_image_url(product) == "/p3.jpg"


def test_main_image_falls_back_to_first_in_order(app, users):
    product = make_product(users["seller"], image_urls=("/p1.jpg", "/p2.jpg"))
    for img in product.images:
        img.is_main = False
    db.session.commit()

    assert image_resolver.main_image_url(product) == "/p1.jpg"
    assert image_resolver.main_image_url(make_product(name="Bare", image_urls=())) is None


def test_database_rejects_ownerless_image(app):
    db.session.add(ProductImage(image_url="/lost.jpg"))
    with pytest.raises(IntegrityError):
        db.session.commit()
    db.session.rollback()


def test_database_rejects_doubly_owned_image(app, users):
    product = make_product(users["seller"])
    req = new_request(users["seller"])
    db.session.add(ProductImage(image_url="/both.jpg", product_id=product.id, product_request_id=req.id))
    with pytest.raises(IntegrityError):
        db.session.commit()
    db.session.rollback()
