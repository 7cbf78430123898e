# --- models/user.py ---
import uuid
from models import db
from datetime import datetime


class UserProfile(db.Model):
    __tablename__ = "user_profile"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = db.Column(db.String(255), unique=True, nullable=True)
    name = db.Column(db.String(100), nullable=True)
    phone = db.Column(db.String(15), nullable=True)
    role = db.Column(db.String(20), default="consumer")
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<User id={self.id} role={self.role}>"
