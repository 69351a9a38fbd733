from clipverse.extensions import db
from clipverse.models.user import gen_uuid
from clipverse.utils.clock import utcnow


class Follow(db.Model):
    __tablename__ = "follows"
    __table_args__ = (
        db.UniqueConstraint("follower_id", "following_id", name="uq_follows_pair"),
        db.Index("ix_follows_follower_created", "follower_id", "created_at"),
        db.Index("ix_follows_following_created", "following_id", "created_at"),
    )

    id = db.Column(db.String(50), primary_key=True, default=lambda: gen_uuid("fol"))
    follower_id = db.Column(db.String(50), db.ForeignKey("users.id"), nullable=False)
    following_id = db.Column(db.String(50), db.ForeignKey("users.id"), nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow)

    follower = db.relationship("User", foreign_keys=[follower_id])
    following = db.relationship("User", foreign_keys=[following_id])
