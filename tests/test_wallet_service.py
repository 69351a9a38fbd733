"""Tests for the wallet transaction coordinator."""
from decimal import Decimal

import pytest

from clipverse.extensions import db
from clipverse.models.wallet import Wallet
from clipverse.models.wallet_history import EntryStatus, EntryType, TransactionType, WalletHistory
from clipverse.services import wallet_service
from clipverse.utils.exceptions import (
    Conflict,
    CounterpartyWalletMissing,
    InsufficientBalance,
    InvalidAmount,
    InvalidTransactionType,
    MalformedReason,
    NotFound,
    StorageConflict,
    ValidationError,
)
from clipverse.utils.reasons import CommunityReason, VideoReason


def entries_for(user_id):
    return WalletHistory.query.filter_by(user_id=user_id).order_by(WalletHistory.created_at).all()


def assert_ledger_matches(user_id):
    assert wallet_service.current_balance(user_id) == wallet_service.ledger_balance(user_id)


class TestNormalizeAmount:
    @pytest.mark.parametrize("raw, expected", [
        (10, Decimal("10.00")),
        ("10.5", Decimal("10.50")),
        (0.25, Decimal("0.25")),
    ])
    def test_accepts_positive_amounts(self, raw, expected):
        assert wallet_service.normalize_amount(raw) == expected

    @pytest.mark.parametrize("raw", [None, 0, -5, "abc", "1.234", True, "NaN", "Infinity"])
    def test_rejects_invalid_amounts(self, raw):
        with pytest.raises(InvalidAmount):
            wallet_service.normalize_amount(raw)


class TestCredit:
    def test_reward_is_completed_and_moves_balance(self, make_user):
        user = make_user()

        entry = wallet_service.credit(user.id, "25.00", "reward")

        assert entry.status == EntryStatus.COMPLETED
        assert entry.type == EntryType.PAYIN
        assert wallet_service.current_balance(user.id) == Decimal("25.00")
        assert_ledger_matches(user.id)

    def test_creates_wallet_on_first_use(self, make_user):
        user = make_user(with_wallet=False)
        assert wallet_service.get_wallet(user.id) is None

        wallet_service.credit(user.id, 10, "refund")

        assert wallet_service.current_balance(user.id) == Decimal("10.00")

    def test_first_use_tolerates_wallet_created_by_another_request(self, make_user, monkeypatch):
        user = make_user(with_wallet=False)
        real_get_wallet = wallet_service.get_wallet
        lookups = []

        def wallet_appears_after_first_lookup(user_id):
            lookups.append(user_id)
            if len(lookups) == 1:
                db.session.add(Wallet(user_id=user_id))
                db.session.commit()
                return None
            return real_get_wallet(user_id)

        monkeypatch.setattr(wallet_service, "get_wallet", wallet_appears_after_first_lookup)

        wallet_service.credit(user.id, 10, "reward")

        assert Wallet.query.filter_by(user_id=user.id).count() == 1
        assert wallet_service.current_balance(user.id) == Decimal("10.00")
        assert_ledger_matches(user.id)

    def test_recharge_stays_pending_until_settled(self, make_user):
        user = make_user()

        entry = wallet_service.credit(user.id, 50, "recharge")

        assert entry.status == EntryStatus.PENDING
        assert wallet_service.current_balance(user.id) == Decimal("0.00")
        assert_ledger_matches(user.id)

    def test_other_requires_reason(self, make_user):
        user = make_user()
        with pytest.raises(MalformedReason):
            wallet_service.credit(user.id, 10, "other")

        entry = wallet_service.credit(user.id, 10, "other", VideoReason("vid-1"))
        assert entry.reason == VideoReason("vid-1")

    def test_rejects_unknown_and_withdrawal_types(self, make_user):
        user = make_user()
        for tx_type in ("bonus", "withdrawal"):
            with pytest.raises(InvalidTransactionType):
                wallet_service.credit(user.id, 10, tx_type)
        assert entries_for(user.id) == []


class TestDebit:
    def test_debit_reduces_balance_and_records_payout(self, make_user):
        user = make_user(balance=100)

        entry = wallet_service.debit(user.id, 30, VideoReason("vid-9"))

        assert entry.type == EntryType.PAYOUT
        assert entry.transaction_type == TransactionType.OTHER
        assert entry.status == EntryStatus.COMPLETED
        assert wallet_service.current_balance(user.id) == Decimal("70.00")
        assert_ledger_matches(user.id)

    def test_overdraw_fails_and_leaves_balance_untouched(self, make_user):
        user = make_user(balance=20)
        before = len(entries_for(user.id))

        with pytest.raises(InsufficientBalance) as exc:
            wallet_service.debit(user.id, "20.01", VideoReason("vid-9"))

        assert exc.value.details["available"] == 20.0
        assert wallet_service.current_balance(user.id) == Decimal("20.00")
        assert len(entries_for(user.id)) == before

    def test_exact_balance_can_be_spent(self, make_user):
        user = make_user(balance=20)
        wallet_service.debit(user.id, 20, VideoReason("vid-9"))
        assert wallet_service.current_balance(user.id) == Decimal("0.00")

    def test_missing_wallet_is_insufficient(self, make_user):
        user = make_user(with_wallet=False)
        with pytest.raises(InsufficientBalance):
            wallet_service.debit(user.id, 1, VideoReason("vid-9"))

    def test_reason_is_required(self, make_user):
        user = make_user(balance=20)
        with pytest.raises(MalformedReason):
            wallet_service.debit(user.id, 1, None)


class TestTransfer:
    def test_moves_money_and_writes_two_entries(self, make_user):
        payer = make_user(balance=100)
        payee = make_user()
        reason = CommunityReason("cmt-1")

        result = wallet_service.transfer(payer.id, payee.id, 40, reason)

        assert result.from_balance == Decimal("60.00")
        assert result.to_balance == Decimal("40.00")
        assert [e.type for e in result.entries] == [EntryType.PAYOUT, EntryType.PAYIN]
        assert all(e.reason == reason for e in result.entries)
        assert_ledger_matches(payer.id)
        assert_ledger_matches(payee.id)

    def test_underfunded_transfer_changes_nothing(self, make_user):
        payer = make_user(balance=10)
        payee = make_user(balance=5)
        counts = (len(entries_for(payer.id)), len(entries_for(payee.id)))

        with pytest.raises(InsufficientBalance):
            wallet_service.transfer(payer.id, payee.id, 11, CommunityReason("cmt-1"))

        assert wallet_service.current_balance(payer.id) == Decimal("10.00")
        assert wallet_service.current_balance(payee.id) == Decimal("5.00")
        assert (len(entries_for(payer.id)), len(entries_for(payee.id))) == counts

    def test_missing_payee_wallet_rolls_back(self, make_user):
        payer = make_user(balance=10)
        payee = make_user(with_wallet=False)

        with pytest.raises(CounterpartyWalletMissing):
            wallet_service.transfer(payer.id, payee.id, 5, CommunityReason("cmt-1"))

        assert wallet_service.current_balance(payer.id) == Decimal("10.00")
        assert entries_for(payee.id) == []

    def test_missing_payer_wallet_is_insufficient(self, make_user):
        payer = make_user(with_wallet=False)
        payee = make_user()
        with pytest.raises(InsufficientBalance):
            wallet_service.transfer(payer.id, payee.id, 5, CommunityReason("cmt-1"))

    def test_self_transfer_rejected(self, make_user):
        user = make_user(balance=10)
        with pytest.raises(ValidationError):
            wallet_service.transfer(user.id, user.id, 5, CommunityReason("cmt-1"))


class TestWithdraw:
    bank = {
        "accountNumber": "123456789012",
        "ifscCode": "HDFC0001234",
        "accountHolderName": "Asha Rao",
    }

    def test_successful_withdrawal_completes_single_entry(self, make_user):
        user = make_user(balance=100)

        entry = wallet_service.withdraw(user.id, 40, self.bank)

        assert entry.status == EntryStatus.COMPLETED
        assert entry.transaction_type == TransactionType.WITHDRAWAL
        assert entry.bank_details["accountNumber"] == "XXXXXXXX9012"
        assert wallet_service.current_balance(user.id) == Decimal("60.00")
        withdrawals = [e for e in entries_for(user.id) if e.transaction_type == TransactionType.WITHDRAWAL]
        assert len(withdrawals) == 1
        assert_ledger_matches(user.id)

    def test_overdraw_records_exactly_one_failed_entry(self, make_user):
        user = make_user(balance=30)

        with pytest.raises(InsufficientBalance) as exc:
            wallet_service.withdraw(user.id, 31, self.bank)

        withdrawals = [e for e in entries_for(user.id) if e.transaction_type == TransactionType.WITHDRAWAL]
        assert len(withdrawals) == 1
        assert withdrawals[0].status == EntryStatus.FAILED
        assert exc.value.details["transactionId"] == withdrawals[0].id
        assert wallet_service.current_balance(user.id) == Decimal("30.00")

    def test_failure_to_mark_failed_keeps_original_error(self, make_user, monkeypatch):
        user = make_user(balance=30)

        def storage_down(entry_id):
            raise StorageConflict("Withdrawal status update could not be completed, please retry")

        monkeypatch.setattr(wallet_service, "_mark_failed", storage_down)

        with pytest.raises(InsufficientBalance):
            wallet_service.withdraw(user.id, 31, self.bank)

        withdrawals = [e for e in entries_for(user.id) if e.transaction_type == TransactionType.WITHDRAWAL]
        assert [e.status for e in withdrawals] == [EntryStatus.PENDING]
        assert wallet_service.current_balance(user.id) == Decimal("30.00")
        assert_ledger_matches(user.id)

    @pytest.mark.parametrize("bank", [
        None,
        {},
        {"accountNumber": "1", "ifscCode": "X"},
        {"accountNumber": " ", "ifscCode": "X", "accountHolderName": "Y"},
    ])
    def test_incomplete_bank_details_write_nothing(self, make_user, bank):
        user = make_user(balance=30)
        before = len(entries_for(user.id))

        with pytest.raises(ValidationError):
            wallet_service.withdraw(user.id, 10, bank)

        assert len(entries_for(user.id)) == before
        assert wallet_service.current_balance(user.id) == Decimal("30.00")

    def test_invalid_amount_writes_nothing(self, make_user):
        user = make_user(balance=30)
        before = len(entries_for(user.id))
        with pytest.raises(InvalidAmount):
            wallet_service.withdraw(user.id, -1, self.bank)
        assert len(entries_for(user.id)) == before


class TestSettleRecharge:
    def test_completed_settlement_credits_once(self, make_user):
        user = make_user()
        entry = wallet_service.credit(user.id, 50, "recharge")

        settled = wallet_service.settle_recharge(entry.id, True, gateway_id="pay_1")
        again = wallet_service.settle_recharge(entry.id, True, gateway_id="pay_1")

        assert settled.status == EntryStatus.COMPLETED
        assert again.status == EntryStatus.COMPLETED
        assert settled.gateway_id == "pay_1"
        assert wallet_service.current_balance(user.id) == Decimal("50.00")
        assert_ledger_matches(user.id)

    def test_failed_settlement_leaves_balance(self, make_user):
        user = make_user()
        entry = wallet_service.credit(user.id, 50, "recharge")

        settled = wallet_service.settle_recharge(entry.id, False)

        assert settled.status == EntryStatus.FAILED
        assert wallet_service.current_balance(user.id) == Decimal("0.00")

    def test_opposite_verdict_conflicts(self, make_user):
        user = make_user()
        entry = wallet_service.credit(user.id, 50, "recharge")
        wallet_service.settle_recharge(entry.id, False)

        with pytest.raises(Conflict):
            wallet_service.settle_recharge(entry.id, True)
        assert wallet_service.current_balance(user.id) == Decimal("0.00")

    def test_only_recharges_can_be_settled(self, make_user):
        user = make_user()
        entry = wallet_service.credit(user.id, 5, "reward")
        with pytest.raises(NotFound):
            wallet_service.settle_recharge(entry.id, True)
        with pytest.raises(NotFound):
            wallet_service.settle_recharge("wh-missing", True)


def test_balance_matches_ledger_after_mixed_activity(make_user):
    alice = make_user(balance=200)
    bob = make_user(balance=10)

    wallet_service.debit(alice.id, "12.50", VideoReason("vid-1"))
    wallet_service.transfer(alice.id, bob.id, 40, CommunityReason("cmt-7"))
    recharge = wallet_service.credit(bob.id, 15, "recharge")
    wallet_service.settle_recharge(recharge.id, True)
    wallet_service.credit(alice.id, 5, "refund")
    with pytest.raises(InsufficientBalance):
        wallet_service.withdraw(bob.id, 1000, TestWithdraw.bank)
    wallet_service.withdraw(bob.id, 20, TestWithdraw.bank)
    db.session.expire_all()

    assert wallet_service.current_balance(alice.id) == Decimal("152.50")
    assert wallet_service.current_balance(bob.id) == Decimal("45.00")
    assert_ledger_matches(alice.id)
    assert_ledger_matches(bob.id)
