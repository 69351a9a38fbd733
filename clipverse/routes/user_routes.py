from flask import Blueprint, request
from flask_jwt_extended import jwt_required

from clipverse.schemas.user_schema import UserSummarySchema
from clipverse.services import follow_service
from clipverse.utils.auth_utils import current_identity, optional_identity
from clipverse.utils.pagination import page_args
from clipverse.utils.response_formatter import success_response

bp = Blueprint("users", __name__, url_prefix="/api/users")

users_summary_schema = UserSummarySchema(many=True)


@bp.route("/<user_id>/follow", methods=["POST"])
@jwt_required()
def follow(user_id):
    ctx = current_identity()
    target, follow = follow_service.follow_user(ctx.user_id, user_id)

    return success_response({
        "follow": {
            "id": follow.id,
            "follower": follow.follower_id,
            "following": follow.following_id,
            "createdAt": follow.created_at.isoformat() + "Z",
        }
    }, message=f"You are now following {target.username}")


@bp.route("/<user_id>/unfollow", methods=["DELETE"])
@jwt_required()
def unfollow(user_id):
    ctx = current_identity()
    target = follow_service.unfollow_user(ctx.user_id, user_id)
    return success_response(message=f"You have unfollowed {target.username}")


@bp.route("", methods=["GET"])
def list_users():
    ctx = optional_identity()
    page, limit = page_args(request.args, default_limit=15)
    search = request.args.get("search", "").strip()
    sort_by = request.args.get("sortBy", "createdAt")
    sort_order = "asc" if request.args.get("sortOrder") == "asc" else "desc"

    users, pagination = follow_service.search_users(
        search, sort_by, sort_order, page, limit, viewer_id=ctx.user_id
    )
    return success_response({
        "users": users,
        "pagination": pagination,
        "filters": {"search": search, "sortBy": sort_by, "sortOrder": sort_order},
    })


@bp.route("/<user_id>/followers", methods=["GET"])
def followers(user_id):
    page, limit = page_args(request.args, default_limit=10)
    users, pagination = follow_service.followers_of(user_id, page, limit)
    return success_response({
        "followers": users_summary_schema.dump(users),
    }, pagination=pagination)


@bp.route("/<user_id>/following", methods=["GET"])
def following(user_id):
    page, limit = page_args(request.args, default_limit=10)
    users, pagination = follow_service.following_of(user_id, page, limit)
    return success_response({
        "following": users_summary_schema.dump(users),
    }, pagination=pagination)
