import enum

from clipverse.extensions import db
from clipverse.models.user import gen_uuid
from clipverse.utils.clock import utcnow


class MemberRole(str, enum.Enum):
    FOLLOWER = "follower"
    CREATOR = "creator"


class CommunityMember(db.Model):
    __tablename__ = "community_members"
    __table_args__ = (
        db.UniqueConstraint("community_id", "user_id", "role", name="uq_community_member_role"),
    )

    id = db.Column(db.String(50), primary_key=True, default=lambda: gen_uuid("mem"))
    community_id = db.Column(
        db.String(50),
        db.ForeignKey("communities.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id = db.Column(db.String(50), db.ForeignKey("users.id"), nullable=False, index=True)
    role = db.Column(
        db.Enum(
            MemberRole,
            name="community_member_role",
            native_enum=False,
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=MemberRole.FOLLOWER,
    )
    joined_at = db.Column(db.DateTime, default=utcnow)

    community = db.relationship("Community", backref=db.backref("members", lazy="dynamic"))
    user = db.relationship("User")
