import enum

from clipverse.extensions import db
from clipverse.models.user import gen_uuid
from clipverse.utils.clock import utcnow
from clipverse.utils.reasons import reason_from_columns


class EntryType(str, enum.Enum):
    PAYIN = "payin"
    PAYOUT = "payout"


class TransactionType(str, enum.Enum):
    RECHARGE = "recharge"
    REWARD = "reward"
    REFUND = "refund"
    OTHER = "other"
    WITHDRAWAL = "withdrawal"


class EntryStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


def _enum_column(enum_cls, name):
    return db.Enum(
        enum_cls,
        name=name,
        native_enum=False,
        values_callable=lambda e: [m.value for m in e],
    )


class WalletHistory(db.Model):
    __tablename__ = "wallet_history"
    __table_args__ = (
        db.CheckConstraint("amount > 0", name="ck_wallet_history_amount_positive"),
        db.Index("ix_wallet_history_user_created", "user_id", "created_at"),
    )

    id = db.Column(db.String(50), primary_key=True, default=lambda: gen_uuid("wh"))
    user_id = db.Column(db.String(50), db.ForeignKey("users.id"), nullable=False)

    type = db.Column(_enum_column(EntryType, "wallet_entry_type"), nullable=False)
    transaction_type = db.Column(
        _enum_column(TransactionType, "wallet_transaction_type"), nullable=False
    )
    amount = db.Column(db.Numeric(12, 2), nullable=False)

    reason_name = db.Column(db.String(32))
    reason_id = db.Column(db.String(64))

    status = db.Column(
        _enum_column(EntryStatus, "wallet_entry_status"),
        nullable=False,
        default=EntryStatus.PENDING,
    )

    # payment gateway reference for recharges
    gateway_id = db.Column(db.String(128))
    # masked payout destination shown back to the user for withdrawals
    bank_details = db.Column(db.JSON)

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    user = db.relationship("User", backref=db.backref("wallet_history", lazy="dynamic"))

    @property
    def reason(self):
        return reason_from_columns(self.reason_name, self.reason_id)
