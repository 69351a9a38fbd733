from sqlalchemy import or_

from clipverse.extensions import db
from clipverse.models.user import User
from clipverse.services.follow_service import enrich_user
from clipverse.utils.exceptions import NotFound


def get_me(user_id):
    user = db.session.get(User, user_id)
    if not user:
        raise NotFound("User not found")
    return enrich_user(user)


def get_public_profile(handle, viewer_id=None):
    user = User.query.filter(or_(User.username == handle, User.name == handle)).first()
    if not user:
        raise NotFound("User not found")
    return enrich_user(user, viewer_id)


def update_profile(user_id, name=None, bio=None, profile_photo=None):
    user = db.session.get(User, user_id)
    if not user:
        raise NotFound("User not found")

    if name:
        user.name = name
    if bio is not None:
        user.bio = bio
    if profile_photo:
        user.profile_photo = profile_photo

    db.session.commit()
    return user
