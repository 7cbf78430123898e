from models import db, BIGINT
from datetime import datetime


class Address(db.Model):
    __tablename__ = "address"

    id = db.Column(BIGINT, primary_key=True)
    user_id = db.Column(db.String(36), db.ForeignKey("user_profile.id"), nullable=False, index=True)
    house_no = db.Column(db.String(50), nullable=False)
    street = db.Column(db.String(255), nullable=False)
    landmark = db.Column(db.String(255), nullable=True)
    city = db.Column(db.String(100), nullable=False)
    state = db.Column(db.String(100), nullable=False)
    postal_code = db.Column(db.String(20), nullable=False)
    country = db.Column(db.String(100), nullable=False)
    mobile_number = db.Column(db.String(20), nullable=False)
    is_default = db.Column(db.Boolean, default=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_shipping_line(self) -> str:
        """Flatten into the display string stored on the order."""
        parts = [f"{self.house_no}, {self.street}"]
        if self.landmark and self.landmark.strip():
            parts.append(f"Near {self.landmark.strip()}")
        parts.append(self.city)
        parts.append(f"{self.state} - {self.postal_code}")
        parts.append(self.country)
        return ", ".join(parts)
