from decimal import Decimal

from app.services import catalog, review_service
from app.version import API_PREFIX
from models import db
from models.product import Product
from models.review import ProductReview


def test_list_filters_and_sorts(client, make_product):
    make_product(name="Blue Mug", price="12.00", category="Kitchen", tags=["ceramic"])
    make_product(name="Wool Scarf", price="45.00", category="Apparel", description="Warm and soft")
    make_product(name="Teapot", price="30.00", category="kitchen", tags=["ceramic", "tea"])

    data = client.get(f"{API_PREFIX}/products?category=Kitchen&sort=price_desc").get_json()["data"]
    assert [p["name"] for p in data["products"]] == ["Teapot", "Blue Mug"]
    assert data["total"] == 2

    found = client.get(f"{API_PREFIX}/products?search=CERAMIC").get_json()["data"]["products"]
    assert {p["name"] for p in found} == {"Blue Mug", "Teapot"}
    found = client.get(f"{API_PREFIX}/products?search=warm").get_json()["data"]["products"]
    assert [p["name"] for p in found] == ["Wool Scarf"]


def test_pagination(client, make_product):
    for i in range(5):
        make_product(name=f"P{i}")
    data = client.get(f"{API_PREFIX}/products?page=2&per_page=2").get_json()["data"]
    assert len(data["products"]) == 2
    assert data["pages"] == 3


def test_bad_sort_and_page(client):
    assert client.get(f"{API_PREFIX}/products?sort=cheapest").status_code == 400
    assert client.get(f"{API_PREFIX}/products?page=two").status_code == 400


def test_categories_and_detail(client, make_product):
    mug = make_product(category="Kitchen", original_price=Decimal("40.00"))
    make_product(name="Hat", category="Apparel")
    assert client.get(f"{API_PREFIX}/products/categories").get_json()["data"]["categories"] == ["Apparel", "Kitchen"]
    detail = client.get(f"{API_PREFIX}/products/{mug.id}").get_json()["data"]["product"]
    assert detail["price"] == 30.0
    assert detail["discount_percent"] == 25
    assert client.get(f"{API_PREFIX}/products/missing").status_code == 404


def test_admin_product_crud(client, login):
    _, hdr = login("admin@example.com", role="admin")
    created = client.post(
        f"{API_PREFIX}/admin/products",
        json={"name": "Lamp", "price": "19.99", "stock": 4, "tags": ["light"]},
        headers=hdr,
    )
    assert created.status_code == 201
    pid = created.get_json()["data"]["product"]["id"]

    updated = client.patch(f"{API_PREFIX}/admin/products/{pid}", json={"price": "24.50"}, headers=hdr)
    body = updated.get_json()["data"]["product"]
    assert body["price"] == 24.5
    assert body["stock"] == 4

    assert client.patch(f"{API_PREFIX}/admin/products/{pid}", json={"name": None}, headers=hdr).status_code == 400
    assert client.post(f"{API_PREFIX}/admin/products", json={"name": "X", "price": "-1"}, headers=hdr).status_code == 400

    assert client.delete(f"{API_PREFIX}/admin/products/{pid}", headers=hdr).status_code == 200
    assert client.get(f"{API_PREFIX}/products/{pid}").status_code == 404


def test_customers_cannot_edit_catalog(client, login):
    _, hdr = login()
    resp = client.post(f"{API_PREFIX}/admin/products", json={"name": "Lamp", "price": "1"}, headers=hdr)
    assert resp.status_code == 403


def test_bulk_stock(client, login, make_product):
    _, hdr = login("admin@example.com", role="admin")
    a, b, c = make_product(name="A"), make_product(name="B"), make_product(name="C", stock=7)
    resp = client.post(
        f"{API_PREFIX}/admin/products/bulk-stock",
        json={"product_ids": [a.id, b.id, "missing"], "stock": 0},
        headers=hdr,
    )
    assert resp.get_json()["data"]["updated"] == 2
    db.session.expire_all()
    assert db.session.get(Product, a.id).stock == 0
    assert db.session.get(Product, c.id).stock == 7


def test_delete_product_removes_its_reviews(app, make_product):
    mug = make_product()
    review_service.create_review(mug.id, 4, "Solid", user_name="Anon")
    db.session.commit()
    catalog.delete_product(mug.id)
    db.session.commit()
    assert db.session.query(ProductReview).count() == 0
