from datetime import datetime

from models import db, new_id


class WishlistEntry(db.Model):
    __tablename__ = "wishlists"
    __table_args__ = (
        db.UniqueConstraint("user_id", "product_id", name="uq_wishlists_user_product"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(db.String(36), db.ForeignKey("user_profile.id"), nullable=False)
    product_id = db.Column(db.String(36), db.ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "product_id": self.product_id,
            "created_at": self.created_at,
        }
