import hashlib
import hmac
import logging

from clipverse.models.wallet_history import EntryStatus
from clipverse.services import wallet_service
from clipverse.utils.exceptions import InvalidSignature, ValidationError
from clipverse.utils.reasons import parse_reason

logger = logging.getLogger(__name__)


def add_money(user_id, amount, transaction_type="recharge", reason=None):
    """Credit the caller's wallet. Returns ``(wallet, entry)``."""
    tx_type = wallet_service.parse_credit_type(transaction_type)
    parsed = parse_reason(reason) if reason is not None else None

    entry = wallet_service.credit(user_id, amount, tx_type, parsed)
    return ensure_wallet(user_id), entry


def process_payment(user_id, amount, reason):
    """Pay for something on the platform. Returns ``(remaining_balance, entry)``."""
    entry = wallet_service.debit(user_id, amount, parse_reason(reason))
    return wallet_service.current_balance(user_id), entry


def request_withdrawal(user_id, amount, bank_details):
    """Returns ``(remaining_balance, entry)``."""
    entry = wallet_service.withdraw(user_id, amount, bank_details)
    return wallet_service.current_balance(user_id), entry


def ensure_wallet(user_id):
    wallet = wallet_service.get_wallet(user_id)
    if not wallet:
        with wallet_service.atomic("Wallet setup"):
            wallet = wallet_service.get_or_create_wallet(user_id)
    return wallet


def wallet_overview(user_id, page, limit):
    wallet = ensure_wallet(user_id)
    entries, pagination = wallet_service.list_history(user_id, page, limit)
    return wallet, entries, pagination


def verify_webhook_signature(secret, body: bytes, signature):
    if not secret:
        logger.error("Payment webhook received but PAYMENT_WEBHOOK_SECRET is not set")
        raise InvalidSignature("Webhook signature cannot be verified")

    computed = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    if not signature or not hmac.compare_digest(computed, signature):
        raise InvalidSignature("Invalid signature")


def settle_recharge(payload):
    entry_id = payload.get("entryId")
    status = payload.get("status")

    if not entry_id or status not in (EntryStatus.COMPLETED.value, EntryStatus.FAILED.value):
        raise ValidationError(
            "entryId and a status of 'completed' or 'failed' are required",
        )

    return wallet_service.settle_recharge(
        entry_id,
        succeeded=status == EntryStatus.COMPLETED.value,
        gateway_id=payload.get("gatewayId"),
    )
