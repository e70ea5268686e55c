from sqlalchemy import func, select

from conftest import file_field, listing_fields, login, make_product
from minishare.extensions import db
from minishare.models import Product, ProductImage, ProductRequest


def submit_listing(client, n=2, **fields):
    data = listing_fields(**fields)
    data["images"] = [file_field(f"photo{i}.jpg") for i in range(n)]
    return client.post("/listings", data=data, content_type="multipart/form-data")


def test_listing_round_trip_through_the_api(client, users):
    login(client, "seller")
    resp = submit_listing(client)
    assert resp.status_code == 201
    submitted = resp.get_json()["request"]
    assert submitted["status"] == "pending"
    assert submitted["kind"] == "listing"
    assert [img["is_main"] for img in submitted["images"]] == [True, False]
    client.post("/auth/logout")

    login(client, "admin")
    listed = client.get("/requests").get_json()["requests"]
    assert [r["id"] for r in listed] == [submitted["id"]]
    assert listed[0]["requested_by"]["username"] == "seller"

    resp = client.post(f"/requests/{submitted['id']}/approve")
    body = resp.get_json()
    assert resp.status_code == 200
    assert body["processed"] is True
    assert body["message"] == 'Approved listing request for "Desk Lamp".'
    assert body["product"]["name"] == "Desk Lamp"
    assert body["product"]["price"] == "29.90"
    assert len(body["product"]["images"]) == 2

    again = client.post(f"/requests/{submitted['id']}/approve").get_json()
    assert again == {"processed": False, "message": "Request was already processed."}

    products = client.get("/products").get_json()["products"]
    assert len(products) == 1
    main_url = products[0]["main_image_url"]
    assert main_url == submitted["images"][0]["image_url"]
    image = client.get(main_url)
    assert image.status_code == 200
    assert image.data == b"\xff" * 32


def test_six_images_are_refused(client, users):
    login(client, "seller")
    resp = submit_listing(client, n=6)

    assert resp.status_code == 422
    assert resp.get_json()["error"]["code"] == "VALIDATION_ERROR"
    assert db.session.scalar(select(func.count(ProductRequest.id))) == 0


def test_disallowed_file_type_is_refused(client, users):
    login(client, "seller")
    data = listing_fields()
    data["images"] = [file_field("a.jpg"), file_field("script.svg")]
    resp = client.post("/listings", data=data, content_type="multipart/form-data")

    assert resp.status_code == 422
    assert db.session.scalar(select(func.count(ProductRequest.id))) == 0


def test_reject_with_comment(client, users):
    login(client, "seller")
    request_id = submit_listing(client).get_json()["request"]["id"]
    client.post("/auth/logout")

    login(client, "admin")
    resp = client.post(f"/requests/{request_id}/reject", json={"reviewComment": "Photos are blurry"})
    assert resp.get_json() == {"processed": True, "message": 'Rejected request for "Desk Lamp".'}

    detail = client.get(f"/requests/{request_id}").get_json()["request"]
    assert detail["status"] == "rejected"
    assert detail["review_comment"] == "Photos are blurry"
    assert detail["reviewed_by"]["username"] == "admin"
    assert client.get("/requests?status=pending").get_json()["requests"] == []
    assert len(client.get("/requests?status=rejected").get_json()["requests"]) == 1
    assert db.session.scalar(select(func.count(Product.id))) == 0


def test_reject_accepts_form_field(client, users):
    login(client, "seller")
    request_id = submit_listing(client).get_json()["request"]["id"]
    login(client, "admin")

    client.post(f"/requests/{request_id}/reject", data={"review_comment": "Duplicate"})

    assert db.session.get(ProductRequest, request_id).review_comment == "Duplicate"


def test_delete_request(client, users):
    login(client, "seller")
    request_id = submit_listing(client).get_json()["request"]["id"]
    login(client, "admin")

    assert client.post(f"/requests/{request_id}/delete").get_json() == {"status": "deleted"}
    resp = client.get(f"/requests/{request_id}")
    assert resp.status_code == 404
    assert resp.get_json()["error"]["code"] == "NOT_FOUND"
    assert db.session.scalar(select(func.count(ProductImage.id))) == 0


def test_moderation_requires_admin(client, users):
    assert client.get("/requests").status_code == 401

    login(client, "seller")
    request_id = submit_listing(client).get_json()["request"]["id"]
    for resp in (
        client.get("/requests"),
        client.get(f"/requests/{request_id}"),
        client.post(f"/requests/{request_id}/approve"),
        client.post(f"/requests/{request_id}/reject"),
        client.post(f"/requests/{request_id}/delete"),
    ):
        assert resp.status_code == 403
        assert resp.get_json()["error"]["code"] == "UNAUTHORIZED"
    assert db.session.get(ProductRequest, request_id).status == "pending"


def test_unknown_status_filter(client, users):
    login(client, "admin")
    resp = client.get("/requests?status=archived")
    assert resp.status_code == 422


def test_edit_request_through_the_api(client, users):
    product = make_product(users["seller"], image_urls=("/images/products/p-1.jpg", "/images/products/p-2.jpg"))
    keep = product.images[1].id
    login(client, "seller")

    data = listing_fields(name="Bike, repainted")
    data["keep_image_ids"] = [str(keep)]
    data["images"] = [file_field("new.png")]
    resp = client.post(f"/listings/{product.id}/edit", data=data, content_type="multipart/form-data")
    assert resp.status_code == 201
    submitted = resp.get_json()["request"]
    assert submitted["kind"] == "edit"
    assert submitted["original_product"]["id"] == product.id
    assert [img["image_url"] for img in submitted["images"]][0] == "/images/products/p-2.jpg"
    assert len(client.get("/listings/mine").get_json()["requests"]) == 1

    login(client, "admin")
    body = client.post(f"/requests/{submitted['id']}/approve").get_json()
    assert body["message"] == 'Approved edit request for "Bike, repainted".'
    assert body["product"]["id"] == product.id
    assert len(body["product"]["images"]) == 2


def test_edit_of_someone_elses_product_is_forbidden(client, users):
    product = make_product(users["seller"])
    login(client, "buyer")
    data = listing_fields()
    data["images"] = [file_field()]
    resp = client.post(f"/listings/{product.id}/edit", data=data, content_type="multipart/form-data")
    assert resp.status_code == 403


def test_my_products_lists_only_own(client, users):
    make_product(users["seller"], name="Mine")
    make_product(users["buyer"], name="Theirs")
    login(client, "seller")

    products = client.get("/listings/products").get_json()["products"]
    assert [p["name"] for p in products] == ["Mine"]


def test_unknown_route_is_json_404(client):
    resp = client.get("/nope")
    assert resp.status_code == 404
    assert resp.get_json()["error"]["code"] == "not_found"


def test_huge_price_is_refused_with_422(client, users):
    login(client, "seller")
    resp = submit_listing(client, price="1e30")

    assert resp.status_code == 422
    assert set(resp.get_json()["error"]["details"]["fields"]) == {"price"}
    assert db.session.scalar(select(func.count(ProductRequest.id))) == 0
