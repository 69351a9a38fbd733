from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError

from clipverse.extensions import db
from clipverse.models.follow import Follow
from clipverse.models.user import RegistrationState, User
from clipverse.models.wallet import Wallet
from clipverse.utils.exceptions import NotFound, ServiceError, ValidationError
from clipverse.utils.pagination import paginate_query

SORT_FIELDS = {
    "createdAt": User.created_at,
    "name": User.name,
    "username": User.username,
}


def _get_user_or_404(user_id):
    user = db.session.get(User, user_id)
    if not user:
        raise NotFound("User not found")
    return user


def follow_user(follower_id, following_id):
    if follower_id == following_id:
        raise ServiceError("You cannot follow yourself", code="CANNOT_FOLLOW_SELF")

    target = _get_user_or_404(following_id)

    if Follow.query.filter_by(follower_id=follower_id, following_id=following_id).first():
        raise ServiceError("You are already following this user", code="ALREADY_FOLLOWING")

    follow = Follow(follower_id=follower_id, following_id=following_id)
    db.session.add(follow)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ServiceError("You are already following this user", code="ALREADY_FOLLOWING")
    return target, follow


def unfollow_user(follower_id, following_id):
    if follower_id == following_id:
        raise ServiceError("You cannot unfollow yourself", code="CANNOT_FOLLOW_SELF")

    target = _get_user_or_404(following_id)

    follow = Follow.query.filter_by(follower_id=follower_id, following_id=following_id).first()
    if not follow:
        raise ServiceError("You are not following this user", code="NOT_FOLLOWING")

    db.session.delete(follow)
    db.session.commit()
    return target


def follow_counts(user_id):
    followers = Follow.query.filter_by(following_id=user_id).count()
    following = Follow.query.filter_by(follower_id=user_id).count()
    return followers, following


def is_following(viewer_id, user_id):
    if not viewer_id:
        return False
    return Follow.query.filter_by(follower_id=viewer_id, following_id=user_id).first() is not None


def _paginated_users(join_on, filter_col, user_id, page, limit):
    q = (
        User.query
        .join(Follow, join_on == User.id)
        .filter(filter_col == user_id)
    )
    return paginate_query(q.order_by(Follow.created_at.desc()), page, limit)


def followers_of(user_id, page, limit):
    return _paginated_users(Follow.follower_id, Follow.following_id, user_id, page, limit)


def following_of(user_id, page, limit):
    return _paginated_users(Follow.following_id, Follow.follower_id, user_id, page, limit)


def enrich_user(user, viewer_id=None):
    """Profile dict with follow counts, wallet balance and follow status."""
    followers, following = follow_counts(user.id)
    balance = (
        db.session.query(Wallet.balance).filter(Wallet.user_id == user.id).scalar()
    )
    data = user.to_dict()
    data.update({
        "followersCount": followers,
        "followingCount": following,
        "walletBalance": float(balance) if balance is not None else 0.0,
        "isFollowing": is_following(viewer_id, user.id),
    })
    return data


def search_users(search, sort_by, sort_order, page, limit, viewer_id=None):
    if sort_by not in SORT_FIELDS:
        raise ValidationError(
            "Invalid sort field",
            details={"allowed": list(SORT_FIELDS)},
            status=400,
        )
    column = SORT_FIELDS[sort_by]

    q = User.query.filter(User.registration_state == RegistrationState.REGISTERED)
    if search:
        pattern = f"%{search.lower()}%"
        q = q.filter(or_(
            func.lower(User.name).like(pattern),
            func.lower(User.username).like(pattern),
        ))

    q = q.order_by(column.asc() if sort_order == "asc" else column.desc())
    users, pagination = paginate_query(q, page, limit)
    return [enrich_user(u, viewer_id) for u in users], pagination
