from decimal import Decimal

from clipverse.extensions import db
from clipverse.models.user import gen_uuid
from clipverse.utils.clock import utcnow


class Wallet(db.Model):
    __tablename__ = "wallets"
    __table_args__ = (
        db.CheckConstraint("balance >= 0", name="ck_wallets_balance_non_negative"),
    )

    id = db.Column(db.String(50), primary_key=True, default=lambda: gen_uuid("wal"))
    user_id = db.Column(db.String(50), db.ForeignKey("users.id"), unique=True, nullable=False)

    balance = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    currency = db.Column(db.String(10), nullable=False, default="INR")

    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    user = db.relationship("User", backref=db.backref("wallet", uselist=False))
