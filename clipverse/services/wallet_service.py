"""
Wallet transaction coordinator.

Every balance change goes through here. A change and the ledger entry that
records it are written in the same database transaction, so a reader either
sees both or neither. Balances are moved with conditional UPDATEs
(``balance >= amount`` guard on debits) instead of read-modify-write, which
lets the database serialize concurrent debits on one wallet: the loser
matches zero rows and fails with ``InsufficientBalance``.

The invariant kept here is

    wallet.balance == sum(completed payins) - sum(completed payouts)

which is why pending entries (recharges awaiting settlement, withdrawals in
flight) never move the balance.
"""
import logging
from collections import namedtuple
from contextlib import contextmanager
from decimal import Decimal, InvalidOperation

from sqlalchemy import case, func, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError

from clipverse.extensions import db
from clipverse.models.wallet import Wallet
from clipverse.models.wallet_history import (
    EntryStatus,
    EntryType,
    TransactionType,
    WalletHistory,
)
from clipverse.utils.clock import utcnow
from clipverse.utils.exceptions import (
    Conflict,
    CounterpartyWalletMissing,
    InsufficientBalance,
    InvalidAmount,
    InvalidTransactionType,
    MalformedReason,
    NotFound,
    ServiceError,
    StorageConflict,
    ValidationError,
)
from clipverse.utils.pagination import paginate_query
from clipverse.utils.reasons import to_columns

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
MAX_AMOUNT = Decimal("9999999999.99")

CREDIT_TYPES = (
    TransactionType.RECHARGE,
    TransactionType.REWARD,
    TransactionType.REFUND,
    TransactionType.OTHER,
)
BANK_FIELDS = ("accountNumber", "ifscCode", "accountHolderName")

# dialects with INSERT ... ON CONFLICT DO NOTHING
_INSERTS = {"postgresql": postgresql.insert, "sqlite": sqlite.insert}

TransferResult = namedtuple("TransferResult", ["from_balance", "to_balance", "entries"])


def normalize_amount(amount) -> Decimal:
    """Coerce user input to a positive two-place Decimal or raise InvalidAmount."""
    if amount is None or isinstance(amount, bool):
        raise InvalidAmount("Amount is required")
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError):
        raise InvalidAmount("Amount must be a number")

    if not value.is_finite() or value <= 0:
        raise InvalidAmount("Amount must be greater than zero")
    if value != value.quantize(CENT):
        raise InvalidAmount("Amount cannot have more than two decimal places")
    if value > MAX_AMOUNT:
        raise InvalidAmount("Amount is too large")
    return value.quantize(CENT)


def parse_credit_type(value) -> TransactionType:
    try:
        tx_type = TransactionType(value)
    except ValueError:
        tx_type = None
    if tx_type not in CREDIT_TYPES:
        raise InvalidTransactionType(
            "Invalid transaction type",
            details={"allowed": [t.value for t in CREDIT_TYPES]},
        )
    return tx_type


@contextmanager
def atomic(action):
    """Commit everything done in the block, or roll all of it back.

    Service errors propagate unchanged; database errors (including driver
    timeouts) become ``StorageConflict``.
    """
    try:
        yield
        db.session.commit()
    except ServiceError:
        db.session.rollback()
        raise
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error("%s aborted by the database", action, exc_info=True)
        raise StorageConflict(f"{action} could not be completed, please retry") from e


# ---------------------------------------------------------------------------
# reads
# ---------------------------------------------------------------------------

def get_wallet(user_id):
    return Wallet.query.filter_by(user_id=user_id).first()


def get_or_create_wallet(user_id):
    """Return the wallet of ``user_id``, inserting an empty one on first use.

    The insert is ``ON CONFLICT DO NOTHING`` on ``user_id``, so two first
    uses racing each other both end up with the single row.
    """
    wallet = get_wallet(user_id)
    if wallet is None:
        insert = _INSERTS[db.session.get_bind().dialect.name]
        db.session.execute(
            insert(Wallet)
            .values(user_id=user_id, balance=Decimal("0.00"))
            .on_conflict_do_nothing(index_elements=[Wallet.user_id])
        )
        wallet = get_wallet(user_id)
    return wallet


def current_balance(user_id):
    balance = db.session.query(Wallet.balance).filter(Wallet.user_id == user_id).scalar()
    return Decimal(balance).quantize(CENT) if balance is not None else None


def ledger_balance(user_id):
    """Balance implied by the completed ledger entries of ``user_id``."""
    signed = case(
        (WalletHistory.type == EntryType.PAYIN, WalletHistory.amount),
        else_=-WalletHistory.amount,
    )
    total = (
        db.session.query(func.coalesce(func.sum(signed), 0))
        .filter(
            WalletHistory.user_id == user_id,
            WalletHistory.status == EntryStatus.COMPLETED,
        )
        .scalar()
    )
    return Decimal(total).quantize(CENT)


def list_history(user_id, page, limit):
    q = WalletHistory.query.filter_by(user_id=user_id).order_by(
        WalletHistory.created_at.desc(), WalletHistory.id.desc()
    )
    return paginate_query(q, page, limit)


# ---------------------------------------------------------------------------
# balance primitives; callers own the transaction
# ---------------------------------------------------------------------------

def _increment(user_id, amount):
    get_or_create_wallet(user_id)
    db.session.execute(
        update(Wallet)
        .where(Wallet.user_id == user_id)
        .values(balance=Wallet.balance + amount, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )


def _decrement(user_id, amount):
    result = db.session.execute(
        update(Wallet)
        .where(Wallet.user_id == user_id, Wallet.balance >= amount)
        .values(balance=Wallet.balance - amount, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise InsufficientBalance(
            "Insufficient balance",
            details={"required": float(amount)},
        )


def _entry(user_id, entry_type, tx_type, amount, status, reason=None, **extra):
    reason_name, reason_id = to_columns(reason)
    entry = WalletHistory(
        user_id=user_id,
        type=entry_type,
        transaction_type=tx_type,
        amount=amount,
        reason_name=reason_name,
        reason_id=reason_id,
        status=status,
        **extra,
    )
    db.session.add(entry)
    return entry


def _with_balance(exc, user_id):
    # re-read after rollback so the caller sees the balance that beat them
    balance = current_balance(user_id)
    exc.details["available"] = float(balance) if balance is not None else 0.0
    return exc


# ---------------------------------------------------------------------------
# operations
# ---------------------------------------------------------------------------

def credit_entries(user_id, amount, tx_type, reason=None):
    """Stage a credit in the open transaction and return its ledger entry."""
    if tx_type == TransactionType.OTHER and reason is None:
        raise MalformedReason("A reason is required for transactions of type 'other'")

    if tx_type == TransactionType.RECHARGE:
        # settled asynchronously by the payment gateway
        return _entry(user_id, EntryType.PAYIN, tx_type, amount, EntryStatus.PENDING, reason)

    _increment(user_id, amount)
    return _entry(user_id, EntryType.PAYIN, tx_type, amount, EntryStatus.COMPLETED, reason)


def credit(user_id, amount, transaction_type, reason=None):
    amount = normalize_amount(amount)
    tx_type = parse_credit_type(transaction_type)

    with atomic("Credit"):
        entry = credit_entries(user_id, amount, tx_type, reason)

    logger.info(
        "credit user_id=%s type=%s amount=%s status=%s entry=%s",
        user_id, tx_type.value, amount, entry.status.value, entry.id,
    )
    return entry


def debit(user_id, amount, reason):
    amount = normalize_amount(amount)
    if reason is None:
        raise MalformedReason("A payment reason is required")

    try:
        with atomic("Payment"):
            _decrement(user_id, amount)
            entry = _entry(
                user_id, EntryType.PAYOUT, TransactionType.OTHER, amount,
                EntryStatus.COMPLETED, reason,
            )
    except InsufficientBalance as e:
        raise _with_balance(e, user_id)

    logger.info("debit user_id=%s amount=%s entry=%s", user_id, amount, entry.id)
    return entry


def transfer_entries(from_user_id, to_user_id, amount, reason):
    """Stage a two-party transfer in the open transaction."""
    if from_user_id == to_user_id:
        raise ValidationError("Cannot transfer to the same wallet", status=400)

    # lock both rows in a fixed order so opposite transfers cannot deadlock
    wallets = (
        Wallet.query
        .filter(Wallet.user_id.in_([from_user_id, to_user_id]))
        .order_by(Wallet.user_id)
        .with_for_update()
        .all()
    )
    owners = {w.user_id for w in wallets}

    if from_user_id not in owners:
        raise InsufficientBalance("Insufficient balance", details={"required": float(amount)})
    if to_user_id not in owners:
        raise CounterpartyWalletMissing("Recipient wallet not found")

    _decrement(from_user_id, amount)
    _increment(to_user_id, amount)

    return [
        _entry(from_user_id, EntryType.PAYOUT, TransactionType.OTHER, amount,
               EntryStatus.COMPLETED, reason),
        _entry(to_user_id, EntryType.PAYIN, TransactionType.OTHER, amount,
               EntryStatus.COMPLETED, reason),
    ]


def transfer(from_user_id, to_user_id, amount, reason):
    amount = normalize_amount(amount)
    if reason is None:
        raise MalformedReason("A transfer reason is required")

    try:
        with atomic("Transfer"):
            entries = transfer_entries(from_user_id, to_user_id, amount, reason)
    except InsufficientBalance as e:
        raise _with_balance(e, from_user_id)

    logger.info(
        "transfer from=%s to=%s amount=%s entries=%s",
        from_user_id, to_user_id, amount, [e.id for e in entries],
    )
    return TransferResult(
        from_balance=current_balance(from_user_id),
        to_balance=current_balance(to_user_id),
        entries=entries,
    )


def validate_bank_details(bank_details):
    if not isinstance(bank_details, dict):
        raise ValidationError(
            "Bank details are required for withdrawal",
            details={"missing": list(BANK_FIELDS)},
        )
    missing = [
        f for f in BANK_FIELDS
        if not isinstance(bank_details.get(f), str) or not bank_details[f].strip()
    ]
    if missing:
        raise ValidationError(
            "Bank details are required for withdrawal",
            details={"missing": missing},
        )
    return {f: bank_details[f].strip() for f in BANK_FIELDS}


def mask_bank_details(bank):
    account = bank["accountNumber"]
    return {
        "accountNumber": f"{'X' * max(len(account) - 4, 0)}{account[-4:]}",
        "ifscCode": bank["ifscCode"],
        "accountHolderName": bank["accountHolderName"],
    }


def withdraw(user_id, amount, bank_details):
    """Debit ``amount`` for payout to a bank account.

    The pending ledger entry is committed before the balance is touched; it
    is then flipped to ``completed`` together with the debit, or to
    ``failed`` if the debit does not go through.
    """
    amount = normalize_amount(amount)
    bank = validate_bank_details(bank_details)

    with atomic("Withdrawal"):
        entry = _entry(
            user_id, EntryType.PAYOUT, TransactionType.WITHDRAWAL, amount,
            EntryStatus.PENDING, bank_details=mask_bank_details(bank),
        )
    entry_id = entry.id

    try:
        with atomic("Withdrawal"):
            _decrement(user_id, amount)
            _set_status(entry_id, EntryStatus.PENDING, EntryStatus.COMPLETED)
    except ServiceError as e:
        try:
            _mark_failed(entry_id)
        except StorageConflict:
            logger.error(
                "could not mark withdrawal entry=%s failed, it stays pending", entry_id,
                exc_info=True,
            )
        logger.warning(
            "withdrawal failed user_id=%s amount=%s entry=%s: %s",
            user_id, amount, entry_id, e.message,
        )
        e.details["transactionId"] = entry_id
        if isinstance(e, InsufficientBalance):
            raise _with_balance(e, user_id)
        raise

    logger.info("withdrawal user_id=%s amount=%s entry=%s", user_id, amount, entry_id)
    return db.session.get(WalletHistory, entry_id)


def _set_status(entry_id, expected, new_status, **values):
    result = db.session.execute(
        update(WalletHistory)
        .where(WalletHistory.id == entry_id, WalletHistory.status == expected)
        .values(status=new_status, updated_at=utcnow(), **values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def _mark_failed(entry_id):
    with atomic("Withdrawal status update"):
        _set_status(entry_id, EntryStatus.PENDING, EntryStatus.FAILED)


def settle_recharge(entry_id, succeeded, gateway_id=None):
    """Apply the gateway's verdict to a pending recharge.

    Settling twice with the same verdict returns the entry unchanged;
    settling an entry that already ended the other way is a conflict.
    """
    target = EntryStatus.COMPLETED if succeeded else EntryStatus.FAILED

    with atomic("Recharge settlement"):
        entry = db.session.get(WalletHistory, entry_id)
        if entry is None or entry.transaction_type != TransactionType.RECHARGE:
            raise NotFound("Recharge not found")

        if _set_status(entry_id, EntryStatus.PENDING, target, gateway_id=gateway_id):
            if succeeded:
                _increment(entry.user_id, entry.amount)
            settled = True
        else:
            settled = False

    db.session.refresh(entry)
    if not settled and entry.status != target:
        raise Conflict(
            "Recharge was already settled",
            details={"status": entry.status.value},
        )

    if settled:
        logger.info(
            "recharge settled entry=%s user_id=%s status=%s",
            entry.id, entry.user_id, entry.status.value,
        )
    return entry
