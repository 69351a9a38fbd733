import sys

from clipverse.main import create_app
from clipverse.extensions import db
from clipverse.models.wallet import Wallet
from clipverse.services.wallet_service import ledger_balance

# -------------------------------------------------------------------
# Compares every cached wallet balance with the total of its
# completed ledger entries (payins minus payouts).
# -------------------------------------------------------------------

def find_mismatches():
    mismatches = []
    for wallet in db.session.query(Wallet).order_by(Wallet.user_id).all():
        expected = ledger_balance(wallet.user_id)
        if wallet.balance != expected:
            mismatches.append((wallet.user_id, wallet.balance, expected))
    return mismatches


def main():
    mismatches = find_mismatches()

    for user_id, balance, expected in mismatches:
        print(f"MISMATCH {user_id} | wallet={balance} ledger={expected} diff={balance - expected}")

    if mismatches:
        print(f"\n{len(mismatches)} wallet(s) out of balance.")
        return 1

    print("All wallets match their ledger.")
    return 0


# -------------------------------------------------------------------
# ENTRY POINT
# -------------------------------------------------------------------

if __name__ == "__main__":
    app = create_app()
    with app.app_context():
        sys.exit(main())
