"""
Ledger "reason" references.

A reason says what a payment was for. Each kind of entity gets its own
variant class so callers never branch on the raw ``name`` string; the
string only exists at the storage and JSON edges (``to_columns`` /
``parse_reason`` / ``reason_from_columns``).
"""
import enum
from dataclasses import dataclass
from functools import singledispatch
from typing import ClassVar, Optional, Union

from clipverse.extensions import db
from clipverse.models.community import Community
from clipverse.utils.exceptions import MalformedReason

MAX_REF_LENGTH = 64


class ReasonKind(str, enum.Enum):
    VIDEO = "Video"
    SUBSCRIPTION = "Subscription"
    COMMENT = "Comment"
    COMMUNITY = "Community"


@dataclass(frozen=True)
class VideoReason:
    video_id: str
    kind: ClassVar[ReasonKind] = ReasonKind.VIDEO

    @property
    def ref_id(self):
        return self.video_id


@dataclass(frozen=True)
class SubscriptionReason:
    subscription_id: str
    kind: ClassVar[ReasonKind] = ReasonKind.SUBSCRIPTION

    @property
    def ref_id(self):
        return self.subscription_id


@dataclass(frozen=True)
class CommentReason:
    comment_id: str
    kind: ClassVar[ReasonKind] = ReasonKind.COMMENT

    @property
    def ref_id(self):
        return self.comment_id


@dataclass(frozen=True)
class CommunityReason:
    community_id: str
    kind: ClassVar[ReasonKind] = ReasonKind.COMMUNITY

    @property
    def ref_id(self):
        return self.community_id


Reason = Union[VideoReason, SubscriptionReason, CommentReason, CommunityReason]

_VARIANTS = {
    ReasonKind.VIDEO: VideoReason,
    ReasonKind.SUBSCRIPTION: SubscriptionReason,
    ReasonKind.COMMENT: CommentReason,
    ReasonKind.COMMUNITY: CommunityReason,
}


def parse_reason(data) -> Reason:
    """Build a reason variant from a ``{"name": ..., "id": ...}`` payload."""
    if not isinstance(data, dict):
        raise MalformedReason("Reason must be an object with name and id")

    name = data.get("name")
    ref_id = data.get("id")

    try:
        kind = ReasonKind(name)
    except ValueError:
        raise MalformedReason(
            "Unknown reason name",
            details={"allowed": [k.value for k in ReasonKind]},
        )

    if not isinstance(ref_id, str) or not ref_id.strip() or len(ref_id) > MAX_REF_LENGTH:
        raise MalformedReason("Reason id must be a non-empty string")

    return _VARIANTS[kind](ref_id.strip())


def reason_from_columns(name: Optional[str], ref_id: Optional[str]) -> Optional[Reason]:
    if not name:
        return None
    return _VARIANTS[ReasonKind(name)](ref_id)


def to_columns(reason: Optional[Reason]):
    if reason is None:
        return None, None
    return reason.kind.value, reason.ref_id


def reason_to_dict(reason: Optional[Reason]):
    if reason is None:
        return None
    return {"name": reason.kind.value, "id": reason.ref_id}


@singledispatch
def describe_reason(reason):
    raise TypeError(f"Unhandled reason variant: {type(reason).__name__}")


@describe_reason.register
def _(reason: CommunityReason):
    community = db.session.get(Community, reason.community_id)
    if community is None:
        return {"id": reason.community_id}
    return {"id": community.id, "name": community.name, "bio": community.bio}


# videos, subscriptions and comments are owned by other services
@describe_reason.register
def _(reason: VideoReason):
    return {"id": reason.video_id}


@describe_reason.register
def _(reason: SubscriptionReason):
    return {"id": reason.subscription_id}


@describe_reason.register
def _(reason: CommentReason):
    return {"id": reason.comment_id}

