# --- models/user.py ---
from models import db, new_id
from datetime import datetime


class UserProfile(db.Model):
    __tablename__ = "user_profile"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    email = db.Column(db.String(255), unique=True, nullable=True)
    name = db.Column(db.String(100), nullable=True)
    role = db.Column(db.String(20), nullable=False, default="customer")  # customer, admin
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def display_name(self) -> str:
        if self.name and self.name.strip():
            return self.name.strip()
        if self.email:
            return self.email.split("@", 1)[0]
        return ""

    def __repr__(self):
        return f"<User id={self.id} role={self.role}>"
