from dataclasses import dataclass
from typing import Optional

from flask_jwt_extended import get_jwt_identity, verify_jwt_in_request

from clipverse.extensions import db
from clipverse.models.user import User


@dataclass(frozen=True)
class AuthContext:
    """Identity of the caller for the current request."""
    user_id: Optional[str]

    @property
    def is_authenticated(self):
        return self.user_id is not None


def current_identity() -> AuthContext:
    """Build the context for a ``@jwt_required()`` route."""
    return AuthContext(user_id=get_jwt_identity())


def optional_identity() -> AuthContext:
    """Context for public routes that personalise output when a token is sent."""
    verify_jwt_in_request(optional=True)
    return AuthContext(user_id=get_jwt_identity())


def lookup_token_user(jwt_header, jwt_data):
    return db.session.get(User, jwt_data["sub"])
