from flask import Blueprint, current_app, request
from flask_jwt_extended import jwt_required

from clipverse.extensions import limiter
from clipverse.schemas.user_schema import ProfileUpdateSchema, RegisterSchema
from clipverse.services import auth_service, profile_service
from clipverse.utils.auth_utils import current_identity, optional_identity
from clipverse.utils.exceptions import Forbidden
from clipverse.utils.response_formatter import success_response
from clipverse.utils.uploads import save_image
from clipverse.utils.validation import load_payload, request_data

bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _otp_limit():
    return current_app.config.get("OTP_RATELIMIT", "5 per minute")


@bp.route("/send-otp", methods=["POST"])
@limiter.limit(_otp_limit)
def send_otp():
    data = request.get_json(silent=True) or {}
    user, is_existing = auth_service.send_phone_otp(data.get("phone"))

    return success_response({
        "isExistingUser": is_existing,
    }, message="OTP sent successfully")


@bp.route("/verify-otp", methods=["POST"])
def verify_otp():
    data = request.get_json(silent=True) or {}
    user, token = auth_service.verify_phone_otp(data.get("phone"), data.get("otp"))

    payload = {"isRegistered": user.is_registered}
    if token:
        payload["token"] = token
    return success_response(payload, message="Phone number verified successfully")


@bp.route("/register", methods=["POST"])
def register():
    profile = load_payload(RegisterSchema(), request_data(request))

    user = auth_service.find_user_by_phone(profile["phone"])
    photo = None
    if user and user.is_phone_verified and not user.is_registered:
        photo = save_image(request.files.get("profilePhoto"), "PROFILES_FOLDER", user.id)

    user, token = auth_service.register_user(profile["phone"], profile, profile_photo=photo)
    current_app.logger.info(f"User registered user_id={user.id}")

    data = user.to_dict()
    data.update({"followersCount": 0, "followingCount": 0, "walletBalance": 0.0})
    return success_response({
        "token": token,
        "user": data,
    }, message="User registered successfully", status=201)


@bp.route("/login", methods=["POST"])
@jwt_required()
def login():
    ctx = current_identity()
    data = request.get_json(silent=True) or {}

    user, token = auth_service.login(data.get("phone"))
    if user.id != ctx.user_id:
        raise Forbidden("Phone number does not belong to this session")

    return success_response({
        "token": token,
        "user": profile_service.get_me(user.id),
    })


@bp.route("/me", methods=["GET"])
@jwt_required()
def me():
    ctx = current_identity()
    return success_response({"user": profile_service.get_me(ctx.user_id)})


@bp.route("/profile/<handle>", methods=["GET"])
def public_profile(handle):
    ctx = optional_identity()
    return success_response({
        "user": profile_service.get_public_profile(handle, viewer_id=ctx.user_id)
    })


@bp.route("/profile", methods=["PUT"])
@jwt_required()
def update_profile():
    ctx = current_identity()
    fields = load_payload(ProfileUpdateSchema(), request_data(request))
    photo = save_image(request.files.get("profilePhoto"), "PROFILES_FOLDER", ctx.user_id)

    user = profile_service.update_profile(
        ctx.user_id,
        name=fields.get("name"),
        bio=fields.get("bio"),
        profile_photo=photo,
    )
    return success_response({"user": user.to_dict()}, message="Profile updated successfully")
