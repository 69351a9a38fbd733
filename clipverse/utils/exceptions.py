class ServiceError(Exception):
    code = "SERVICE_ERROR"
    status = 400

    def __init__(self, message="Service error", code=None, details=None, status=None):
        self.message = message
        if code is not None:
            self.code = code
        if status is not None:
            self.status = status
        self.details = details or {}
        super().__init__(message)


class ValidationError(ServiceError):
    code = "VALIDATION_ERROR"
    status = 422


class InvalidAmount(ServiceError):
    code = "INVALID_AMOUNT"


class MalformedReason(ServiceError):
    code = "MALFORMED_REASON"


class InvalidTransactionType(ServiceError):
    code = "INVALID_TRANSACTION_TYPE"


class InsufficientBalance(ServiceError):
    code = "INSUFFICIENT_BALANCE"


class CounterpartyWalletMissing(ServiceError):
    code = "COUNTERPARTY_WALLET_MISSING"
    status = 500


class FounderWalletMissing(CounterpartyWalletMissing):
    code = "FOUNDER_WALLET_MISSING"


class AlreadyMember(ServiceError):
    code = "ALREADY_MEMBER"


class NotFound(ServiceError):
    code = "NOT_FOUND"
    status = 404


class Forbidden(ServiceError):
    code = "FORBIDDEN"
    status = 403


class Conflict(ServiceError):
    code = "CONFLICT"
    status = 409


class StorageConflict(ServiceError):
    code = "STORAGE_CONFLICT"
    status = 500


class InvalidSignature(ServiceError):
    code = "INVALID_SIGNATURE"
    status = 401


# OTP / registration
class NoOtpPending(ServiceError):
    code = "NO_OTP_PENDING"


class OtpExpired(ServiceError):
    code = "OTP_EXPIRED"


class InvalidOtp(ServiceError):
    code = "INVALID_OTP"


class OtpLocked(ServiceError):
    code = "OTP_LOCKED"
    status = 403


class OtpCooldown(ServiceError):
    code = "OTP_COOLDOWN"
    status = 429


class InvalidTransition(ServiceError):
    code = "INVALID_TRANSITION"
    status = 409


class PhoneNotVerified(ServiceError):
    code = "PHONE_NOT_VERIFIED"


class RegistrationIncomplete(ServiceError):
    code = "REGISTRATION_INCOMPLETE"
    status = 401
