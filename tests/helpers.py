import hashlib
import hmac
from decimal import Decimal

from models import db
from models.user import UserProfile
from models.product import Product
from models.address import Address
from models.cart import CartItem
from models.shipping import ShippingRule
from app.services.checkout.payment import GatewayError, GatewayOrder, PaymentCallback
from app.services.checkout.pricing import to_money


# -------------------- data helpers --------------------

def make_user(email="c1@example.com", role="consumer"):
    user = UserProfile(email=email, name="Asha", phone="9876543210", role=role)
    db.session.add(user)
    db.session.commit()
    return user


def make_product(price, name="Item", active=True):
    product = Product(name=name, price=Decimal(str(price)), is_active=active)
    db.session.add(product)
    db.session.commit()
    return product


def make_address(user, landmark="City Mall"):
    address = Address(
        user_id=user.id,
        house_no="12",
        street="MG Road",
        landmark=landmark,
        city="Pune",
        state="MH",
        postal_code="411001",
        country="India",
        mobile_number="9876543210",
    )
    db.session.add(address)
    db.session.commit()
    return address


def put_in_cart(user, product, quantity):
    ci = CartItem(user_id=user.id, product_id=product.id, quantity=quantity)
    db.session.add(ci)
    db.session.commit()
    return ci


def add_rule(min_order_value, charge, active=True):
    rule = ShippingRule(min_order_value=min_order_value, charge=charge, is_active=active)
    db.session.add(rule)
    db.session.commit()
    return rule


def cart_of(user):
    rows = CartItem.query.filter_by(user_id=user.id).all()
    return {ci.product_id: ci.quantity for ci in rows}


def auth_header(client, email="c1@example.com", role="consumer"):
    resp = client.post("/__auth/login_stub", json={"email": email, "role": role})
    return {"Authorization": f"Bearer {resp.get_json()['data']['access']}"}


# -------------------- payment fakes --------------------

class FakeGateway:
    key_id = "rzp_fake_key"
    secret = "fake_secret"

    def __init__(self, fail_with=None):
        self.fail_with = fail_with
        self.orders = {}
        self.created = []

    def sign(self, gateway_order_id, payment_id):
        return hmac.new(
            self.secret.encode(), f"{gateway_order_id}|{payment_id}".encode(), hashlib.sha256
        ).hexdigest()

    def create_order(self, amount, currency, receipt, timeout=None):
        if self.fail_with:
            raise GatewayError(self.fail_with)
        order = GatewayOrder(f"order_{len(self.orders) + 1}", to_money(amount), currency, receipt)
        self.orders[order.gateway_order_id] = order
        self.created.append(order)
        return order

    def fetch_order(self, gateway_order_id, timeout=None):
        if gateway_order_id not in self.orders:
            raise GatewayError("The id provided does not exist")
        return self.orders[gateway_order_id]

    def verify_signature(self, gateway_order_id, payment_id, signature):
        if not (gateway_order_id and payment_id and signature):
            return False
        return hmac.compare_digest(self.sign(gateway_order_id, payment_id), signature)


class FakeUI:
    """Stands in for the hosted checkout dialog."""

    def __init__(self, gateway, outcome="authorized", reason=None, signature=None, on_present=None):
        self.gateway = gateway
        self.outcome = outcome
        self.reason = reason
        self.signature = signature
        self.on_present = on_present
        self.presented = []

    def present(self, options, timeout=None):
        self.presented.append((options, timeout))
        if self.on_present:
            self.on_present(options)
        if self.outcome == "authorized":
            payment_id = "pay_1"
            return PaymentCallback(
                status="authorized",
                gateway_order_id=options.gateway_order_id,
                payment_id=payment_id,
                signature=self.signature or self.gateway.sign(options.gateway_order_id, payment_id),
            )
        return PaymentCallback(status=self.outcome, gateway_order_id=options.gateway_order_id, reason=self.reason)


