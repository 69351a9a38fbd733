from decimal import Decimal

from clipverse.extensions import db
from clipverse.models.user import gen_uuid
from clipverse.utils.clock import utcnow


class Community(db.Model):
    __tablename__ = "communities"
    __table_args__ = (
        db.CheckConstraint("cost >= 0", name="ck_communities_cost_non_negative"),
    )

    id = db.Column(db.String(50), primary_key=True, default=lambda: gen_uuid("cmt"))
    name = db.Column(db.String(255), unique=True, nullable=False)
    bio = db.Column(db.Text)
    profile_photo = db.Column(db.String(1024))
    founder_id = db.Column(db.String(50), db.ForeignKey("users.id"), nullable=False, index=True)
    cost = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0.00"))

    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    founder = db.relationship("User", backref=db.backref("founded_communities", lazy="dynamic"))
