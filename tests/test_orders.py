from models.user import UserProfile
from app.version import API_PREFIX
from helpers import add_rule, auth_header, make_address, make_product, put_in_cart

BASE = f"{API_PREFIX}/consumer"


def _place(client, headers, address_id):
    resp = client.post(
        f"{BASE}/checkout/place-order",
        json={"address_id": address_id, "payment_method": "COD"},
        headers=headers,
    )
    assert resp.status_code == 201
    return resp.get_json()["data"]["order_id"]


def test_history_lists_own_orders_newest_first(client, app):
    headers = auth_header(client)
    user = UserProfile.query.filter_by(email="c1@example.com").one()
    address = make_address(user)
    tea = make_product(100, "Tea")
    add_rule(0, 50)
    put_in_cart(user, tea, 2)
    first = _place(client, headers, address.id)
    put_in_cart(user, tea, 1)
    second = _place(client, headers, address.id)

    resp = client.get(f"{BASE}/orders", headers=headers)
    assert resp.status_code == 200
    orders = resp.get_json()["data"]["orders"]
    assert [o["id"] for o in orders] == [second, first]
    item = orders[1]["items"][0]
    assert item["quantity"] == 2
    assert item["price_at_purchase"] == 100.0
    assert item["product"]["name"] == "Tea"
    assert orders[1]["total_price"] == 250.0


def test_history_is_scoped_to_caller(client, app):
    headers = auth_header(client)
    user = UserProfile.query.filter_by(email="c1@example.com").one()
    put_in_cart(user, make_product(100), 1)
    order_id = _place(client, headers, make_address(user).id)

    other = auth_header(client, email="o@example.com")
    resp = client.get(f"{BASE}/orders", headers=other)
    assert resp.get_json()["data"]["orders"] == []
    resp = client.get(f"{BASE}/orders/{order_id}", headers=other)
    assert resp.status_code == 404


def test_order_detail(client, app):
    headers = auth_header(client)
    user = UserProfile.query.filter_by(email="c1@example.com").one()
    put_in_cart(user, make_product(120, "Rice"), 1)
    order_id = _place(client, headers, make_address(user).id)

    resp = client.get(f"{BASE}/orders/{order_id}", headers=headers)
    assert resp.status_code == 200
    order = resp.get_json()["data"]["order"]
    assert order["status"] == "processing"
    assert order["payment_method"] == "COD"
    assert order["shipping_address"].startswith("12, MG Road")
    assert [i["product"]["name"] for i in order["items"]] == ["Rice"]


def test_orders_require_auth(client, app):
    assert client.get(f"{BASE}/orders").status_code == 401
