import pytest
from models import db
from models.cart import CartItem
from app.services import cart as cart_service
from app.utils import transactional
from app.version import API_PREFIX
from helpers import auth_header, cart_of, make_product, make_user, add_rule


def test_add_is_upsert_by_user_and_product(app):
    user = make_user()
    product = make_product(100)
    with transactional():
        cart_service.add_to_cart(user.id, product.id, 2)
    with transactional():
        cart_service.add_to_cart(user.id, product.id, 5)
    assert CartItem.query.filter_by(user_id=user.id).count() == 1
    assert cart_of(user) == {product.id: 5}


def test_add_rejects_zero_quantity_and_unknown_product(app):
    user = make_user()
    product = make_product(100)
    with pytest.raises(cart_service.CartError):
        cart_service.add_to_cart(user.id, product.id, 0)
    with pytest.raises(cart_service.ProductNotFound):
        cart_service.add_to_cart(user.id, 9999, 1)
    inactive = make_product(10, active=False)
    with pytest.raises(cart_service.ProductNotFound):
        cart_service.add_to_cart(user.id, inactive.id, 1)


def test_decrement_to_zero_removes_row(app):
    user = make_user()
    product = make_product(100)
    with transactional():
        cart_service.add_to_cart(user.id, product.id, 1)
    with transactional():
        assert cart_service.update_quantity(user.id, product.id, 0) is None
    assert cart_of(user) == {}


def test_update_missing_item_raises(app):
    user = make_user()
    with pytest.raises(cart_service.ProductNotFound):
        cart_service.update_quantity(user.id, 1, 3)


def test_remove_and_clear(app):
    user = make_user()
    a, b = make_product(10, "A"), make_product(20, "B")
    with transactional():
        cart_service.add_to_cart(user.id, a.id, 1)
        cart_service.add_to_cart(user.id, b.id, 2)
    with transactional():
        assert cart_service.remove_item(user.id, a.id) is True
    assert cart_service.remove_item(user.id, a.id) is False
    with transactional():
        assert cart_service.clear_cart(user.id) == 1
    assert cart_of(user) == {}


def test_quantity_check_constraint(app):
    user = make_user()
    product = make_product(10)
    db.session.add(CartItem(user_id=user.id, product_id=product.id, quantity=0))
    with pytest.raises(Exception):
        db.session.commit()
    db.session.rollback()


# -------------------- HTTP --------------------

def test_cart_routes_add_view_update_remove_clear(client, app):
    headers = auth_header(client)
    product = make_product(100, "Tea")
    add_rule(0, 50)
    add_rule(300, 0)

    resp = client.post(f"{API_PREFIX}/consumer/cart/add", json={"product_id": product.id, "quantity": 2}, headers=headers)
    assert resp.status_code == 200

    view = client.get(f"{API_PREFIX}/consumer/cart/view", headers=headers)
    data = view.get_json()["data"]
    assert view.status_code == 200
    assert len(data["cart"]) == 1
    assert data["cart"][0]["product"]["name"] == "Tea"
    assert data["quote"]["subtotal"] == 200.0
    assert data["quote"]["shipping_fee"] == 50.0
    assert data["quote"]["amount_to_free_shipping"] == 100.0

    resp = client.post(f"{API_PREFIX}/consumer/cart/update", json={"product_id": product.id, "quantity": 3}, headers=headers)
    assert resp.status_code == 200
    assert resp.get_json()["data"]["quantity"] == 3

    resp = client.post(f"{API_PREFIX}/consumer/cart/update", json={"product_id": product.id, "quantity": 0}, headers=headers)
    assert resp.status_code == 200
    assert resp.get_json()["message"] == "Item removed"

    resp = client.post(f"{API_PREFIX}/consumer/cart/remove", json={"product_id": product.id}, headers=headers)
    assert resp.status_code == 404

    client.post(f"{API_PREFIX}/consumer/cart/add", json={"product_id": product.id}, headers=headers)
    resp = client.post(f"{API_PREFIX}/consumer/cart/clear", headers=headers)
    assert resp.status_code == 200
    view = client.get(f"{API_PREFIX}/consumer/cart/view", headers=headers)
    assert view.get_json()["data"]["cart"] == []


def test_cart_add_validates_body(client, app):
    headers = auth_header(client)
    resp = client.post(f"{API_PREFIX}/consumer/cart/add", json={"quantity": 1}, headers=headers)
    assert resp.status_code == 400
    body = resp.get_json()
    assert body["status"] == "error"
    assert any(e["field"] == "product_id" for e in body["errors"])


def test_cart_add_unknown_product_404(client, app):
    headers = auth_header(client)
    resp = client.post(f"{API_PREFIX}/consumer/cart/add", json={"product_id": 42}, headers=headers)
    assert resp.status_code == 404


def test_cart_requires_auth(client, app):
    resp = client.get(f"{API_PREFIX}/consumer/cart/view")
    assert resp.status_code == 401


def test_cart_requires_consumer_role(client, app):
    headers = auth_header(client, email="ops@example.com", role="vendor")
    resp = client.get(f"{API_PREFIX}/consumer/cart/view", headers=headers)
    assert resp.status_code == 403
