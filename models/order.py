from sqlalchemy import Column, String, Numeric, Text, DateTime, ForeignKey
from sqlalchemy.sql import func
from models import db, BIGINT


class Order(db.Model):
    __tablename__ = "orders"
    __table_args__ = (
        db.UniqueConstraint("idempotency_token", name="uq_orders_idempotency_token"),
        # One gateway order is paid once, so it backs at most one order
        db.UniqueConstraint("gateway_order_id", name="uq_orders_gateway_order_id"),
        db.UniqueConstraint("gateway_payment_id", name="uq_orders_gateway_payment_id"),
        db.Index("ix_orders_user_created", "user_id", "created_at"),
    )
    id = Column(BIGINT, primary_key=True)
    user_id = Column(String(36), ForeignKey("user_profile.id"), nullable=False)
    shipping_address = Column(Text, nullable=False)
    total_price = Column(Numeric(10, 2), nullable=False)
    shipping_fee = Column(Numeric(10, 2), nullable=False, default=0)
    status = Column(String(30), default="processing")  # processing, shipped, delivered, cancelled
    payment_method = Column(String(10), nullable=False)  # COD or ONLINE
    gateway_order_id = Column(String(64), nullable=True)
    gateway_payment_id = Column(String(64), nullable=True)
    idempotency_token = Column(String(64), nullable=True)
    created_at = Column(DateTime, default=func.now())

    items = db.relationship("OrderItem", backref="order", cascade="all, delete-orphan", lazy=True)

    def to_dict(self):
        return {
            "id": self.id,
            "shipping_address": self.shipping_address,
            "total_price": float(self.total_price),
            "shipping_fee": float(self.shipping_fee or 0),
            "status": self.status,
            "payment_method": self.payment_method,
            "gateway_order_id": self.gateway_order_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "items": [oi.to_dict() for oi in self.items],
        }


class OrderItem(db.Model):
    __tablename__ = "order_item"
    id = db.Column(BIGINT, primary_key=True)
    order_id = db.Column(BIGINT, db.ForeignKey("orders.id"), nullable=False, index=True)
    product_id = db.Column(BIGINT, db.ForeignKey("product.id"), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    price_at_purchase = db.Column(db.Numeric(10, 2), nullable=False)

    product = db.relationship("Product", lazy="joined")

    def to_dict(self):
        return {
            "product_id": self.product_id,
            "quantity": self.quantity,
            "price_at_purchase": float(self.price_at_purchase),
            "product": self.product.to_dict() if self.product else None,
        }


class OrderCommitLog(db.Model):
    """One row per order-commit step, written outside the step's own transaction."""

    __tablename__ = "order_commit_log"
    id = Column(BIGINT, primary_key=True)
    attempt_token = Column(String(64), nullable=False, index=True)
    user_id = Column(String(36), nullable=False)
    order_id = Column(BIGINT, nullable=True)
    step = Column(String(30), nullable=False)  # order_inserted, items_inserted, cart_cleared
    status = Column(String(10), nullable=False)  # done, failed
    details = Column(Text, nullable=True)
    timestamp = Column(DateTime, default=func.now())
