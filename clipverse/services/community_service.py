import logging
from decimal import Decimal, InvalidOperation

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError

from clipverse.extensions import db
from clipverse.models.community import Community
from clipverse.models.community_member import CommunityMember, MemberRole
from clipverse.models.user import User
from clipverse.services import wallet_service
from clipverse.utils.exceptions import (
    AlreadyMember,
    Conflict,
    CounterpartyWalletMissing,
    Forbidden,
    FounderWalletMissing,
    InsufficientBalance,
    NotFound,
    ValidationError,
)
from clipverse.utils.reasons import CommunityReason

logger = logging.getLogger(__name__)


def parse_cost(value):
    if value is None or value == "":
        return Decimal("0.00")
    try:
        cost = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError("Invalid cost value", details={"field": "cost"})
    if not cost.is_finite() or cost < 0 or cost != cost.quantize(wallet_service.CENT):
        raise ValidationError("Invalid cost value", details={"field": "cost"})
    return cost.quantize(wallet_service.CENT)


def get_community_or_404(community_id):
    community = db.session.get(Community, community_id)
    if not community:
        raise NotFound("Community not found")
    return community


def find_membership(community_id, user_id, role):
    return CommunityMember.query.filter_by(
        community_id=community_id, user_id=user_id, role=role
    ).first()


def member_counts(community_id):
    rows = (
        db.session.query(CommunityMember.role, func.count(CommunityMember.id))
        .filter(CommunityMember.community_id == community_id)
        .group_by(CommunityMember.role)
        .all()
    )
    counts = {role: n for role, n in rows}
    return counts.get(MemberRole.FOLLOWER, 0), counts.get(MemberRole.CREATOR, 0)


def create_community(founder_id, name, bio=None, cost=None, profile_photo=None):
    name = (name or "").strip()
    if not name:
        raise ValidationError("Community name is required", details={"field": "name"})
    cost = parse_cost(cost)

    exists = Community.query.filter(func.lower(Community.name) == name.lower()).first()
    if exists:
        raise Conflict("A community with this name already exists")

    community = Community(
        name=name,
        bio=bio,
        profile_photo=profile_photo,
        founder_id=founder_id,
        cost=cost,
    )
    db.session.add(community)
    db.session.flush()
    db.session.add(CommunityMember(
        community_id=community.id,
        user_id=founder_id,
        role=MemberRole.CREATOR,
    ))

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise Conflict("A community with this name already exists")

    logger.info("community created id=%s founder=%s cost=%s", community.id, founder_id, cost)
    return community


def list_communities(search, page, limit):
    q = Community.query
    if search:
        pattern = f"%{search}%"
        q = q.filter(or_(Community.name.ilike(pattern), Community.bio.ilike(pattern)))

    total = q.count()
    items = (
        q.order_by(Community.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return items, {
        "currentPage": page,
        "totalPages": (total + limit - 1) // limit,
        "totalCommunities": total,
        "hasMore": (page - 1) * limit + len(items) < total,
    }


def community_details(community_id, viewer_id):
    community = get_community_or_404(community_id)
    followers, creators = member_counts(community.id)
    return community, {
        "followersCount": followers,
        "creatorsCount": creators,
        "isCreator": find_membership(community.id, viewer_id, MemberRole.CREATOR) is not None,
        "isFollowing": find_membership(community.id, viewer_id, MemberRole.FOLLOWER) is not None,
    }


def update_community(community_id, user_id, bio=None, cost=None, profile_photo=None):
    community = get_community_or_404(community_id)
    if community.founder_id != user_id:
        raise Forbidden("Only founder can update community")

    if bio is not None:
        community.bio = bio
    if cost is not None:
        community.cost = parse_cost(cost)
    if profile_photo:
        community.profile_photo = profile_photo

    db.session.commit()
    return community


def toggle_follow(community_id, user_id):
    """Follow or unfollow; returns the new membership or ``None``."""
    community = get_community_or_404(community_id)
    existing = find_membership(community.id, user_id, MemberRole.FOLLOWER)

    if existing:
        db.session.delete(existing)
        db.session.commit()
        return None

    member = CommunityMember(community_id=community.id, user_id=user_id, role=MemberRole.FOLLOWER)
    db.session.add(member)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise Conflict("Follow state changed concurrently, please retry")
    return member


def become_creator(community_id, user_id):
    """Pay the community's cost to its founder and join as a creator.

    Payment and membership commit together. The unique
    (community, user, role) constraint makes a concurrent second call fail
    and roll its payment back, so a user is never charged twice.
    """
    community = get_community_or_404(community_id)

    if find_membership(community.id, user_id, MemberRole.CREATOR):
        raise AlreadyMember("You are already a creator of this community")

    cost = Decimal(community.cost or 0).quantize(wallet_service.CENT)
    member = CommunityMember(community_id=community.id, user_id=user_id, role=MemberRole.CREATOR)
    entries = []

    try:
        with wallet_service.atomic("Become creator"):
            if cost > 0:
                entries = wallet_service.transfer_entries(
                    user_id, community.founder_id, cost, CommunityReason(community.id)
                )
            db.session.add(member)
            try:
                db.session.flush()
            except IntegrityError:
                raise AlreadyMember("You are already a creator of this community")
    except InsufficientBalance as e:
        e.message = "Insufficient balance to become a creator"
        balance = wallet_service.current_balance(user_id)
        e.details["available"] = float(balance) if balance is not None else 0.0
        raise
    except CounterpartyWalletMissing as e:
        raise FounderWalletMissing("Founder's wallet not found") from e

    logger.info(
        "user_id=%s became creator of community=%s paid=%s to founder=%s",
        user_id, community.id, cost, community.founder_id,
    )
    return community, member, entries


def list_members(community_id, role=None):
    get_community_or_404(community_id)
    q = CommunityMember.query.filter_by(community_id=community_id)
    if role:
        try:
            q = q.filter(CommunityMember.role == MemberRole(role))
        except ValueError:
            raise ValidationError("Invalid role specified", status=400)
    return q.order_by(CommunityMember.joined_at.desc()).all()


def user_communities(user_id):
    founded = (
        Community.query.filter_by(founder_id=user_id)
        .order_by(Community.created_at.desc())
        .all()
    )

    def joined(role):
        return (
            db.session.query(Community, CommunityMember.joined_at)
            .join(CommunityMember, CommunityMember.community_id == Community.id)
            .filter(CommunityMember.user_id == user_id, CommunityMember.role == role)
            .order_by(CommunityMember.joined_at.desc())
            .all()
        )

    creator = joined(MemberRole.CREATOR)
    following = joined(MemberRole.FOLLOWER)

    statistics = {
        "foundedCount": len(founded),
        "creatorCount": len(creator),
        "followingCount": len(following),
        "totalCommunitiesCount": Community.query.count(),
    }
    return statistics, founded, creator, following


def founder_summary(community):
    founder = db.session.get(User, community.founder_id)
    return {
        "id": community.founder_id,
        "username": founder.username if founder else None,
        "profilePhoto": founder.profile_photo if founder else None,
    }
