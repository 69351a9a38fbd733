"""
Registration state machine.

    unverified --(OTP verified)--> phone_verified --(profile completed)--> registered

States only move forward. Re-verifying an account that is already past
``unverified`` is accepted and leaves the state untouched.
"""
import logging

from clipverse.models.user import RegistrationState
from clipverse.utils.exceptions import InvalidTransition

logger = logging.getLogger(__name__)

# event -> (states it may fire from, resulting state)
_TRANSITIONS = {
    "phone_verified": (
        {RegistrationState.UNVERIFIED},
        RegistrationState.PHONE_VERIFIED,
    ),
    "profile_completed": (
        {RegistrationState.PHONE_VERIFIED},
        RegistrationState.REGISTERED,
    ),
}

def next_state(current: RegistrationState, event: str) -> RegistrationState:
    """Return the state ``event`` leads to from ``current``.

    Raises ``InvalidTransition`` when the event is unknown or not allowed
    from ``current``.
    """
    try:
        sources, target = _TRANSITIONS[event]
    except KeyError:
        raise InvalidTransition(f"Unknown registration event '{event}'")

    if current not in sources:
        raise InvalidTransition(
            f"Cannot apply '{event}' to an account in state '{current.value}'",
            details={"state": current.value, "event": event},
        )
    return target


def mark_phone_verified(user):
    """Apply OTP verification; a no-op for accounts already past it."""
    if user.registration_state != RegistrationState.UNVERIFIED:
        return user.registration_state
    user.registration_state = next_state(user.registration_state, "phone_verified")
    logger.info("user_id=%s phone verified", user.id)
    return user.registration_state


def mark_registered(user):
    user.registration_state = next_state(user.registration_state, "profile_completed")
    logger.info("user_id=%s registration completed", user.id)
    return user.registration_state
