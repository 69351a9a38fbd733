import enum
import uuid

from clipverse.extensions import db
from clipverse.utils.clock import utcnow

def gen_uuid(prefix=None):
    uid = str(uuid.uuid4())
    return f"{prefix}-{uid}" if prefix else uid


class RegistrationState(str, enum.Enum):
    UNVERIFIED = "unverified"
    PHONE_VERIFIED = "phone_verified"
    REGISTERED = "registered"


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.String(50), primary_key=True, default=lambda: gen_uuid("usr"))
    phone = db.Column(db.String(32), unique=True, nullable=False, index=True)
    name = db.Column(db.String(255))
    username = db.Column(db.String(64), unique=True, index=True)
    date_of_birth = db.Column(db.Date)
    gender = db.Column(db.String(16))
    preference = db.Column(db.JSON, default=list)
    profile_photo = db.Column(db.String(1024))
    video_language = db.Column(db.String(64))
    location = db.Column(db.String(255))
    bio = db.Column(db.Text)

    registration_state = db.Column(
        db.Enum(
            RegistrationState,
            name="registration_state",
            native_enum=False,
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=RegistrationState.UNVERIFIED,
    )
    last_otp_sent = db.Column(db.DateTime)

    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    @property
    def is_phone_verified(self):
        return self.registration_state in (
            RegistrationState.PHONE_VERIFIED,
            RegistrationState.REGISTERED,
        )

    @property
    def is_registered(self):
        return self.registration_state == RegistrationState.REGISTERED

    def to_dict(self):
        return {
            "id": self.id,
            "phone": self.phone,
            "name": self.name,
            "username": self.username,
            "dateOfBirth": self.date_of_birth.isoformat() if self.date_of_birth else None,
            "gender": self.gender,
            "preference": self.preference or [],
            "profilePhoto": self.profile_photo,
            "videoLanguage": self.video_language,
            "location": self.location,
            "bio": self.bio,
            "registrationState": self.registration_state.value,
            "isPhoneVerified": self.is_phone_verified,
            "isRegistered": self.is_registered,
            "createdAt": self.created_at.isoformat() + "Z" if self.created_at else None,
        }
