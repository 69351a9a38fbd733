from datetime import timedelta

import pytest

from clipverse.extensions import db
from clipverse.models.phone_otp import PhoneOTP
from clipverse.models.user import RegistrationState, User
from clipverse.models.wallet import Wallet
from clipverse.services import registration_service
from clipverse.utils.exceptions import InvalidTransition

OTP = "123456"
PHONE = "+919812345678"


@pytest.fixture(autouse=True)
def fixed_otp(monkeypatch):
    monkeypatch.setattr("clipverse.services.auth_service.generate_otp", lambda: OTP)


def send_otp(client, phone=PHONE):
    return client.post("/api/auth/send-otp", json={"phone": phone})


def verify(client, otp=OTP, phone=PHONE):
    return client.post("/api/auth/verify-otp", json={"phone": phone, "otp": otp})


def register(client, phone=PHONE, username="asha"):
    return client.post("/api/auth/register", json={
        "phone": phone,
        "name": "Asha",
        "username": username,
        "dateOfBirth": "1998-04-12",
        "gender": "female",
        "preference": ["music", "travel"],
        "videoLanguage": "hi",
        "location": "Pune",
    })


class TestStateMachine:
    def test_forward_transitions(self):
        assert registration_service.next_state(
            RegistrationState.UNVERIFIED, "phone_verified"
        ) == RegistrationState.PHONE_VERIFIED
        assert registration_service.next_state(
            RegistrationState.PHONE_VERIFIED, "profile_completed"
        ) == RegistrationState.REGISTERED

    @pytest.mark.parametrize("state, event", [
        (RegistrationState.UNVERIFIED, "profile_completed"),
        (RegistrationState.REGISTERED, "profile_completed"),
        (RegistrationState.REGISTERED, "phone_verified"),
        (RegistrationState.UNVERIFIED, "reset"),
    ])
    def test_invalid_transitions_raise(self, state, event):
        with pytest.raises(InvalidTransition):
            registration_service.next_state(state, event)

    def test_verifying_registered_user_keeps_state(self, make_user):
        user = make_user()
        registration_service.mark_phone_verified(user)
        assert user.registration_state == RegistrationState.REGISTERED


class TestOtp:
    def test_send_creates_unverified_user(self, client):
        resp = send_otp(client)

        assert resp.status_code == 200
        assert resp.get_json()["isExistingUser"] is False
        user = User.query.filter_by(phone=PHONE).one()
        assert user.registration_state == RegistrationState.UNVERIFIED
        record = PhoneOTP.query.filter_by(user_id=user.id).one()
        assert record.otp_hash != OTP

    def test_resend_replaces_pending_code(self, client):
        send_otp(client)
        resp = send_otp(client)

        assert resp.get_json()["isExistingUser"] is True
        assert PhoneOTP.query.count() == 1

    def test_verify_moves_to_phone_verified_and_consumes_code(self, client):
        send_otp(client)

        resp = verify(client)
        body = resp.get_json()
        assert resp.status_code == 200
        assert body["isRegistered"] is False
        assert "token" not in body
        assert User.query.filter_by(phone=PHONE).one().registration_state == RegistrationState.PHONE_VERIFIED

        again = verify(client)
        assert again.status_code == 400
        assert again.get_json()["error"]["code"] == "NO_OTP_PENDING"

    def test_wrong_code_fails_and_counts_attempt(self, client):
        send_otp(client)

        resp = verify(client, otp="000000")

        assert resp.status_code == 400
        assert resp.get_json()["error"]["code"] == "INVALID_OTP"
        assert PhoneOTP.query.one().attempts == 1
        assert User.query.filter_by(phone=PHONE).one().registration_state == RegistrationState.UNVERIFIED

    def test_locks_after_max_attempts(self, app, client):
        send_otp(client)
        for _ in range(app.config["OTP_MAX_ATTEMPTS"]):
            verify(client, otp="000000")

        resp = verify(client)
        assert resp.status_code == 403
        assert resp.get_json()["error"]["code"] == "OTP_LOCKED"

    def test_expired_code_fails_closed(self, client):
        send_otp(client)
        record = PhoneOTP.query.one()
        record.expires_at = record.expires_at - timedelta(minutes=11)
        db.session.commit()

        resp = verify(client)
        assert resp.get_json()["error"]["code"] == "OTP_EXPIRED"
        assert verify(client).get_json()["error"]["code"] == "NO_OTP_PENDING"

    def test_code_valid_for_ten_minutes(self, app, client):
        send_otp(client)
        record = PhoneOTP.query.one()
        lifetime = record.expires_at - record.created_at
        assert lifetime == timedelta(minutes=app.config["OTP_EXPIRY_MINUTES"]) == timedelta(minutes=10)

    def test_unknown_phone_is_not_found(self, client):
        resp = verify(client, phone="+910000000000")
        assert resp.status_code == 404

    def test_resend_cooldown(self, app, client):
        app.config["OTP_RESEND_COOLDOWN"] = 60
        send_otp(client)

        resp = send_otp(client)
        assert resp.status_code == 429
        assert resp.get_json()["error"]["code"] == "OTP_COOLDOWN"


class TestRegister:
    def test_full_flow_creates_wallet_and_token(self, client):
        send_otp(client)
        verify(client)

        resp = register(client)
        body = resp.get_json()

        assert resp.status_code == 201
        assert body["token"]
        assert body["user"]["username"] == "asha"
        assert body["user"]["registrationState"] == "registered"
        assert body["user"]["walletBalance"] == 0.0
        user = User.query.filter_by(phone=PHONE).one()
        assert user.is_registered
        assert Wallet.query.filter_by(user_id=user.id).one().balance == 0

        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {body['token']}"})
        assert me.status_code == 200
        assert me.get_json()["user"]["preference"] == ["music", "travel"]

    def test_requires_verified_phone(self, client):
        send_otp(client)
        resp = register(client)
        assert resp.status_code == 400
        assert resp.get_json()["error"]["code"] == "PHONE_NOT_VERIFIED"

    def test_rejects_missing_fields(self, client):
        send_otp(client)
        verify(client)
        resp = client.post("/api/auth/register", json={"phone": PHONE, "name": "Asha"})
        assert resp.status_code == 422
        assert "username" in resp.get_json()["error"]["details"]

    def test_username_must_be_unique(self, client, make_user):
        make_user(username="asha")
        send_otp(client)
        verify(client)

        resp = register(client)
        assert resp.status_code == 409

    def test_cannot_register_twice(self, client):
        send_otp(client)
        verify(client)
        register(client)

        resp = register(client)
        assert resp.status_code == 409

    def test_verify_after_registration_returns_token(self, client):
        send_otp(client)
        verify(client)
        register(client)
        send_otp(client)

        body = verify(client).get_json()
        assert body["isRegistered"] is True
        assert body["token"]
        assert User.query.filter_by(phone=PHONE).one().registration_state == RegistrationState.REGISTERED


class TestLogin:
    def test_login_requires_matching_session(self, client, make_user, auth_headers):
        user = make_user()
        other = make_user()

        ok = client.post("/api/auth/login", json={"phone": user.phone}, headers=auth_headers(user))
        assert ok.status_code == 200
        assert ok.get_json()["token"]

        denied = client.post("/api/auth/login", json={"phone": user.phone}, headers=auth_headers(other))
        assert denied.status_code == 403

    def test_login_requires_token(self, client):
        resp = client.post("/api/auth/login", json={"phone": PHONE})
        assert resp.status_code == 401
