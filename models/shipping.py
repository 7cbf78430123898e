from models import db, BIGINT


class ShippingRule(db.Model):
    __tablename__ = "shipping_rule"

    id = db.Column(BIGINT, primary_key=True)
    min_order_value = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    charge = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
