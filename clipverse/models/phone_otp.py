from clipverse.extensions import db
from clipverse.models.user import gen_uuid
from clipverse.utils.clock import utcnow


class PhoneOTP(db.Model):
    __tablename__ = "phone_otps"

    id = db.Column(
        db.String(50),
        primary_key=True,
        default=lambda: gen_uuid("otp")
    )

    # one pending code per user; reissuing replaces it
    user_id = db.Column(
        db.String(50),
        db.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )

    otp_hash = db.Column(db.String(255), nullable=False)

    expires_at = db.Column(db.DateTime, nullable=False)

    attempts = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime, default=utcnow)

    user = db.relationship(
        "User",
        backref=db.backref(
            "pending_otp",
            uselist=False,
            cascade="all, delete-orphan"
        )
    )

    def is_expired(self, now=None):
        return (now or utcnow()) > self.expires_at
