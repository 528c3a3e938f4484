from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from conftest import DELIVERY, PASSWORD, RecordingNotifier, make_category, make_product, make_user, make_variant
from database import SessionLocal


@pytest.fixture
def client(tables):
    from main import app
    with TestClient(app) as c:
        c.app.state.notifier = RecordingNotifier()
        yield c


@pytest.fixture
def catalog_ids(tables):
    # Separate session, closed before any request is made
    session = SessionLocal()
    try:
        make_user(session, email="admin@snackshop.co.ke", role="admin")
        drinks = make_category(session)
        juice = make_product(session, drinks)
        large = make_variant(session, juice)
        return {"category": drinks.id, "juice": juice.id, "large": large.id}
    finally:
        session.close()


def _register(client, email="jane@snackshop.co.ke"):
    resp = client.post("/register", json={
        "email": email, "password": PASSWORD, "first_name": "Jane",
        "last_name": "Wanjiru", "phone_number": "+254712345678",
    })
    assert resp.status_code == 201, resp.text
    return resp.json()


def _login(client, email):
    resp = client.post("/login", json={"email": email, "password": PASSWORD})
    assert resp.status_code == 200, resp.text
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


@pytest.fixture
def customer(client):
    _register(client)
    return _login(client, "jane@snackshop.co.ke")


@pytest.fixture
def admin(client, catalog_ids):
    return _login(client, "admin@snackshop.co.ke")


def test_register_login_me(client):
    _register(client, email="Mary@SnackShop.co.ke")
    headers = _login(client, "mary@snackshop.co.ke")

    me = client.get("/me", headers=headers).json()
    assert me["email"] == "mary@snackshop.co.ke"
    assert me["role"] == "customer"

    assert client.post("/register", json={
        "email": "mary@snackshop.co.ke", "password": PASSWORD, "first_name": "M",
        "last_name": "K", "phone_number": "+254700000000",
    }).status_code == 400
    assert client.post("/login", json={"email": "mary@snackshop.co.ke", "password": "Wrong1234"}).status_code == 401


def test_weak_password_rejected(client):
    resp = client.post("/register", json={
        "email": "weak@snackshop.co.ke", "password": "password", "first_name": "W",
        "last_name": "K", "phone_number": "+254700000000",
    })
    assert resp.status_code == 422


def test_public_shop_browsing(client, catalog_ids):
    categories = client.get("/shop/categories").json()
    assert [c["slug"] for c in categories] == ["drinks"]

    page = client.get("/shop/products").json()
    assert page["total"] == 1
    assert page["items"][0]["variants"][0]["value"] == "Large"
    assert "cost_price" not in page["items"][0]

    assert client.get("/shop/products/juice").json()["id"] == catalog_ids["juice"]
    assert client.get("/shop/products/nope").status_code == 404
    assert len(client.get("/shop/categories/drinks").json()["products"]) == 1


def test_cart_requires_login(client):
    assert client.get("/cart").status_code in (401, 403)


def test_checkout_flow(client, catalog_ids, customer):
    resp = client.post("/cart/add", headers=customer, json={
        "product_id": catalog_ids["juice"], "variant_id": catalog_ids["large"], "quantity": 2,
    })
    assert resp.status_code == 200, resp.text
    assert Decimal(resp.json()["total"]) == Decimal("440.00")
    assert client.get("/cart/count", headers=customer).json() == {"items": 1, "quantity": 2}

    resp = client.post("/checkout/confirm", headers=customer, json=DELIVERY)
    assert resp.status_code == 200, resp.text
    assert resp.json()["expires_in"] == 300

    notifier = client.app.state.notifier
    (code,) = notifier.codes.values()

    bad = client.post("/checkout/verify-otp", headers=customer, json={"otp": "xxxxxx" if code != "xxxxxx" else "yyyyyy"})
    assert bad.status_code == 400

    resp = client.post("/checkout/verify-otp", headers=customer, json={"otp": code})
    assert resp.status_code == 201, resp.text
    order = resp.json()["order"]
    assert Decimal(order["total_amount"]) == Decimal("440.00")
    assert order["status"] == "pending"
    assert order["status_display"] == "Pending"
    assert Decimal(order["items"][0]["unit_price"]) == Decimal("220.00")
    assert notifier.confirmed == [order["order_number"]]

    replay = client.post("/checkout/verify-otp", headers=customer, json={"otp": code})
    assert replay.status_code == 410

    assert client.get("/cart", headers=customer).json()["items"] == []
    mine = client.get("/orders", headers=customer).json()
    assert mine["total"] == 1

    cancelled = client.put(f"/orders/{order['id']}/cancel", headers=customer)
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "cancelled"


def test_checkout_with_empty_cart(client, customer):
    resp = client.post("/checkout/confirm", headers=customer, json=DELIVERY)
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Your cart is empty"


def test_cart_shows_stock_problems(client, catalog_ids, customer):
    client.post("/cart/add", headers=customer, json={"product_id": catalog_ids["juice"], "quantity": 60})

    view = client.get("/cart", headers=customer).json()
    assert view["stock_valid"] is False
    assert view["stock_errors"][0]["available"] == 50

    resp = client.post("/checkout/confirm", headers=customer, json=DELIVERY)
    assert resp.status_code == 409
    assert resp.json()["items"][0]["requested"] == 60


def test_cart_quantity_validation(client, catalog_ids, customer):
    resp = client.post("/cart/add", headers=customer, json={"product_id": catalog_ids["juice"], "quantity": 101})
    assert resp.status_code == 422
    resp = client.post("/cart/add", headers=customer, json={"product_id": 999, "quantity": 1})
    assert resp.status_code == 404


def test_admin_order_lifecycle(client, catalog_ids, customer, admin):
    client.post("/cart/add", headers=customer, json={"product_id": catalog_ids["juice"], "quantity": 1})
    client.post("/checkout/confirm", headers=customer, json=DELIVERY)
    (code,) = client.app.state.notifier.codes.values()
    order_id = client.post("/checkout/verify-otp", headers=customer, json={"otp": code}).json()["order"]["id"]

    assert client.get("/admin/orders", headers=customer).status_code == 403
    assert client.put(f"/admin/orders/{order_id}/delivered", headers=admin).status_code == 409

    for step in ("confirm", "preparing", "out-for-delivery", "delivered"):
        resp = client.put(f"/admin/orders/{order_id}/{step}", headers=admin)
        assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["status"] == "delivered"
    assert body["payment_status"] == "paid"

    assert client.put(f"/orders/{order_id}/cancel", headers=customer).status_code == 409
    stats = client.get("/admin/orders/stats", headers=admin).json()
    assert stats["by_status"]["delivered"] == 1

    profit = client.get("/reports/profit", headers=admin).json()
    assert profit["order_count"] == 1
    assert client.get("/reports/dashboard", headers=admin).status_code == 200
    logs = client.get("/admin/logs", headers=admin, params={"action": "ORDER_"}).json()
    assert logs["total"] >= 5


def test_patch_status_rejects_skips(client, catalog_ids, customer, admin):
    client.post("/cart/add", headers=customer, json={"product_id": catalog_ids["juice"], "quantity": 1})
    client.post("/checkout/confirm", headers=customer, json=DELIVERY)
    (code,) = client.app.state.notifier.codes.values()
    order_id = client.post("/checkout/verify-otp", headers=customer, json={"otp": code}).json()["order"]["id"]

    resp = client.patch(f"/admin/orders/{order_id}/status", headers=admin, json={"status": "delivered"})
    assert resp.status_code == 409
    resp = client.patch(f"/admin/orders/{order_id}/status", headers=admin, json={"status": "cancelled"})
    assert resp.json()["status"] == "cancelled"


def test_admin_catalog_and_stock(client, catalog_ids, admin):
    resp = client.post("/admin/categories", headers=admin, json={"name": "Snacks"})
    assert resp.status_code == 201
    snacks = resp.json()

    resp = client.post("/admin/products", headers=admin, json={
        "category_id": snacks["id"], "name": "Samosa", "cost_price": "15.00", "selling_price": "40.00",
        "stock_quantity": 10, "ingredients": [{"name": "Beef"}],
    })
    assert resp.status_code == 201, resp.text
    samosa = resp.json()
    assert samosa["slug"] == "samosa"
    assert Decimal(samosa["profit_amount"]) == Decimal("25.00")

    resp = client.post("/stock/adjust", headers=admin, json={
        "product_id": samosa["id"], "quantity_change": -3, "reason": "Burnt",
    })
    assert resp.status_code == 200, resp.text
    assert resp.json()["stock_after"] == 7
    assert client.post("/stock/adjust", headers=admin, json={
        "product_id": samosa["id"], "quantity_change": -50,
    }).status_code == 422

    movements = client.get("/stock", headers=admin, params={"product_id": samosa["id"]}).json()
    assert [m["type"] for m in movements["items"]] == ["ADJUSTMENT", "IN"]

    assert client.delete(f"/admin/categories/{snacks['id']}", headers=admin).status_code == 409
    assert client.delete(f"/admin/products/{samosa['id']}", headers=admin).status_code == 204

    inventory = client.get("/reports/inventory", headers=admin).json()
    assert inventory == {"low_stock": [], "out_of_stock": []}


def test_goods_receipt_write_off_and_stocktake(client, catalog_ids, admin):
    juice = catalog_ids["juice"]

    resp = client.post("/stock/in", headers=admin, json={"product_id": juice, "quantity": 10})
    assert resp.status_code == 200, resp.text
    assert (resp.json()["type"], resp.json()["qty"], resp.json()["stock_after"]) == ("IN", 10, 60)

    resp = client.post("/stock/out", headers=admin, json={
        "product_id": juice, "quantity": 5, "reason": "Expired",
    })
    assert (resp.json()["type"], resp.json()["qty"], resp.json()["stock_after"]) == ("OUT", -5, 55)
    assert client.post("/stock/out", headers=admin, json={"product_id": juice, "quantity": 500}).status_code == 422
    assert client.post("/stock/in", headers=admin, json={"product_id": juice, "quantity": 0}).status_code == 422

    resp = client.put(f"/admin/products/{juice}/stock", headers=admin, json={"stock_quantity": 40})
    assert resp.status_code == 200, resp.text
    assert resp.json()["stock_quantity"] == 40

    movements = client.get("/stock", headers=admin, params={"product_id": juice}).json()
    assert [m["qty"] for m in movements["items"]][:3] == [-15, -5, 10]
