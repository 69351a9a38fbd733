import logging
from datetime import timedelta

from flask import current_app
from flask_jwt_extended import create_access_token
from sqlalchemy import delete, update
from sqlalchemy.exc import IntegrityError

from clipverse.extensions import db
from clipverse.models.phone_otp import PhoneOTP
from clipverse.models.user import RegistrationState, User
from clipverse.services import registration_service, wallet_service
from clipverse.services.sms_service import send_otp_sms
from clipverse.utils.clock import utcnow
from clipverse.utils.exceptions import (
    Conflict,
    InvalidOtp,
    NoOtpPending,
    NotFound,
    OtpCooldown,
    OtpExpired,
    OtpLocked,
    PhoneNotVerified,
    RegistrationIncomplete,
    ValidationError,
)
from clipverse.utils.otp import generate_otp, hash_otp, mask_phone, otp_expiry, verify_otp

logger = logging.getLogger(__name__)


def generate_token_for_user(user):
    return create_access_token(
        identity=user.id,
        expires_delta=timedelta(seconds=current_app.config.get("ACCESS_EXPIRES", 30 * 86400)),
    )


def find_user_by_phone(phone):
    return User.query.filter_by(phone=phone).first()


def send_phone_otp(phone):
    """Issue a fresh OTP for ``phone``, creating an unverified account if needed.

    Returns ``(user, is_existing_user)``.
    """
    phone = (phone or "").strip()
    if not phone:
        raise ValidationError("Phone number is required", details={"field": "phone"})

    now = utcnow()
    user = find_user_by_phone(phone)
    is_existing = user is not None

    if user is None:
        user = User(phone=phone, registration_state=RegistrationState.UNVERIFIED)
        db.session.add(user)
        db.session.flush()
    else:
        cooldown = current_app.config.get("OTP_RESEND_COOLDOWN", 0)
        if user.last_otp_sent and now < user.last_otp_sent + timedelta(seconds=cooldown):
            raise OtpCooldown(
                "Please wait before requesting another OTP",
                details={"retryAfter": cooldown},
            )

    otp = generate_otp()
    record = PhoneOTP.query.filter_by(user_id=user.id).first()
    if record is None:
        record = PhoneOTP(user_id=user.id)
        db.session.add(record)

    record.otp_hash = hash_otp(otp)
    record.expires_at = otp_expiry(current_app.config.get("OTP_EXPIRY_MINUTES", 10), now=now)
    record.attempts = 0
    record.created_at = now
    user.last_otp_sent = now

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise Conflict("An OTP request for this number is already in progress, please retry")

    send_otp_sms(phone, otp)
    logger.info("OTP issued user_id=%s phone=%s", user.id, mask_phone(phone))
    return user, is_existing


def verify_phone_otp(phone, otp):
    """Check ``otp`` against the pending code for ``phone``.

    On success the code is consumed and the account moves to
    ``phone_verified`` (registered accounts stay registered). Consuming the
    code and counting a failed attempt are conditional statements on the
    OTP row, so concurrent verifies cannot reuse a code or lose attempts.
    """
    if not phone or not otp:
        raise ValidationError("Phone number and OTP are required")

    user = find_user_by_phone(phone.strip())
    if not user:
        raise NotFound("User not found")

    record = PhoneOTP.query.filter_by(user_id=user.id).first()
    if record is None:
        raise NoOtpPending("No OTP was sent or it has already been used")

    if record.is_expired():
        db.session.execute(
            delete(PhoneOTP)
            .where(PhoneOTP.id == record.id, PhoneOTP.otp_hash == record.otp_hash)
            .execution_options(synchronize_session=False)
        )
        db.session.commit()
        raise OtpExpired("OTP has expired")

    max_attempts = current_app.config.get("OTP_MAX_ATTEMPTS", 5)
    if record.attempts >= max_attempts:
        raise OtpLocked("Too many attempts, request a new OTP")

    if not verify_otp(str(otp), record.otp_hash):
        counted = db.session.execute(
            update(PhoneOTP)
            .where(
                PhoneOTP.id == record.id,
                PhoneOTP.otp_hash == record.otp_hash,
                PhoneOTP.attempts < max_attempts,
            )
            .values(attempts=PhoneOTP.attempts + 1)
            .execution_options(synchronize_session=False)
        )
        locked = counted.rowcount != 1
        db.session.commit()
        if locked:
            raise OtpLocked("Too many attempts, request a new OTP")
        raise InvalidOtp("Invalid OTP")

    consumed = db.session.execute(
        delete(PhoneOTP)
        .where(
            PhoneOTP.id == record.id,
            PhoneOTP.otp_hash == record.otp_hash,
            PhoneOTP.attempts < max_attempts,
        )
        .execution_options(synchronize_session=False)
    )
    if consumed.rowcount != 1:
        db.session.rollback()
        raise NoOtpPending("No OTP was sent or it has already been used")

    registration_service.mark_phone_verified(user)
    db.session.commit()

    token = generate_token_for_user(user) if user.is_registered else None
    return user, token


def register_user(phone, profile, profile_photo=None):
    """Complete the profile of a phone-verified account.

    ``profile`` holds validated fields (name, username, date_of_birth,
    gender, preference, video_language, location). The wallet is created
    in the same transaction as the state change.
    """
    user = find_user_by_phone(phone)
    if not user or not user.is_phone_verified:
        raise PhoneNotVerified("Phone number not verified")

    if user.is_registered:
        raise Conflict("User is already registered")

    taken = User.query.filter(User.username == profile["username"], User.id != user.id).first()
    if taken:
        raise Conflict("Username already taken", details={"field": "username"})

    user.name = profile["name"]
    user.username = profile["username"]
    user.date_of_birth = profile["date_of_birth"]
    user.gender = profile["gender"]
    user.preference = profile.get("preference") or []
    user.video_language = profile.get("video_language")
    user.location = profile.get("location")
    if profile_photo:
        user.profile_photo = profile_photo

    registration_service.mark_registered(user)

    try:
        # the flush here also surfaces a username taken concurrently
        wallet_service.get_or_create_wallet(user.id)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise Conflict("Username already taken", details={"field": "username"})

    return user, generate_token_for_user(user)


def login(phone):
    phone = (phone or "").strip()
    if not phone:
        raise ValidationError("Please provide your phone number", details={"field": "phone"})

    user = find_user_by_phone(phone)
    if not user:
        raise NotFound("No user found with this phone number")

    if not user.is_phone_verified:
        raise PhoneNotVerified("Please verify your phone number first", status=401)

    if not user.is_registered:
        raise RegistrationIncomplete("Please complete your registration first")

    return user, generate_token_for_user(user)
