from flask import Blueprint, request
from flask_jwt_extended import jwt_required

from clipverse.schemas.community_schema import (
    CommunityCreateSchema,
    CommunityUpdateSchema,
    communities_schema,
    community_schema,
    members_schema,
)
from clipverse.services import community_service, wallet_service
from clipverse.utils.auth_utils import current_identity
from clipverse.utils.pagination import page_args
from clipverse.utils.response_formatter import success_response
from clipverse.utils.uploads import save_image
from clipverse.utils.validation import load_payload, request_data

bp = Blueprint("communities", __name__, url_prefix="/api/communities")


def _with_founder(community):
    data = community_schema.dump(community)
    data["founder"] = community_service.founder_summary(community)
    return data


@bp.route("", methods=["POST"])
@jwt_required()
def create_community():
    ctx = current_identity()
    fields = load_payload(CommunityCreateSchema(), request_data(request))
    photo = save_image(request.files.get("profile_photo"), "COMMUNITIES_FOLDER", ctx.user_id)

    community = community_service.create_community(
        ctx.user_id,
        fields["name"],
        bio=fields.get("bio"),
        cost=fields.get("cost"),
        profile_photo=photo,
    )
    return success_response({"community": _with_founder(community)}, status=201)


@bp.route("", methods=["GET"])
def list_communities():
    page, limit = page_args(request.args, default_limit=15)
    search = request.args.get("search", "").strip()

    items, pagination = community_service.list_communities(search, page, limit)
    return success_response({
        "communities": [_with_founder(c) for c in items],
    }, pagination=pagination)


@bp.route("/user", methods=["GET"])
@jwt_required()
def my_communities():
    ctx = current_identity()
    statistics, founded, creator, following = community_service.user_communities(ctx.user_id)

    def joined(rows):
        out = []
        for community, joined_at in rows:
            data = _with_founder(community)
            data["joinedAt"] = joined_at.isoformat() if joined_at else None
            out.append(data)
        return out

    return success_response({
        "statistics": statistics,
        "founded": communities_schema.dump(founded),
        "creator": joined(creator),
        "following": joined(following),
    })


@bp.route("/<community_id>", methods=["GET"])
@jwt_required()
def get_community(community_id):
    ctx = current_identity()
    community, extra = community_service.community_details(community_id, ctx.user_id)

    data = _with_founder(community)
    data.update(extra)
    return success_response({"community": data})


@bp.route("/<community_id>", methods=["PUT"])
@jwt_required()
def update_community(community_id):
    ctx = current_identity()
    fields = load_payload(CommunityUpdateSchema(), request_data(request), partial=True)
    photo = save_image(request.files.get("profile_photo"), "COMMUNITIES_FOLDER", ctx.user_id)

    community = community_service.update_community(
        community_id,
        ctx.user_id,
        bio=fields.get("bio"),
        cost=fields.get("cost"),
        profile_photo=photo,
    )
    followers, creators = community_service.member_counts(community.id)

    data = _with_founder(community)
    data.update({"followersCount": followers, "creatorsCount": creators})
    return success_response({"community": data})


@bp.route("/<community_id>/follow", methods=["POST"])
@jwt_required()
def toggle_follow(community_id):
    ctx = current_identity()
    member = community_service.toggle_follow(community_id, ctx.user_id)

    if member is None:
        return success_response(message="Successfully unfollowed community")
    return success_response({
        "membership": {
            "role": member.role.value,
            "joinedAt": member.joined_at.isoformat(),
        }
    }, message="Successfully followed community")


@bp.route("/<community_id>/creator", methods=["POST"])
@jwt_required()
def become_creator(community_id):
    ctx = current_identity()
    community, member, entries = community_service.become_creator(community_id, ctx.user_id)
    founder = community_service.founder_summary(community)
    balance = wallet_service.current_balance(ctx.user_id)

    return success_response({
        "membership": {
            "role": member.role.value,
            "joinedAt": member.joined_at.isoformat(),
        },
        "payment": {
            "amount": float(community.cost),
            "founder": {"id": founder["id"], "username": founder["username"]},
            "transactionIds": [e.id for e in entries],
        },
        "wallet": {
            "balance": float(balance) if balance is not None else 0.0,
        },
    }, message="Successfully became a creator")


@bp.route("/<community_id>/members", methods=["GET"])
@jwt_required()
def list_members(community_id):
    members = community_service.list_members(community_id, request.args.get("role"))
    return success_response({"members": members_schema.dump(members)})
