from flask import Blueprint, current_app, request
from flask_jwt_extended import jwt_required

from clipverse.models.wallet_history import EntryStatus
from clipverse.schemas.wallet_schema import history_list_schema, history_schema, wallet_schema
from clipverse.services import payment_service
from clipverse.utils.auth_utils import current_identity
from clipverse.utils.pagination import page_args
from clipverse.utils.response_formatter import success_response

bp = Blueprint("wallet", __name__, url_prefix="/api/wallet")


def _money(value):
    return float(value) if value is not None else 0.0


@bp.route("", methods=["GET"])
@jwt_required()
def wallet_and_history():
    ctx = current_identity()
    page, limit = page_args(request.args)

    wallet, entries, pagination = payment_service.wallet_overview(ctx.user_id, page, limit)
    return success_response({
        "wallet": wallet_schema.dump(wallet),
        "history": history_list_schema.dump(entries),
    }, pagination=pagination)


@bp.route("/add", methods=["POST"])
@jwt_required()
def add_money():
    ctx = current_identity()
    data = request.get_json(silent=True) or {}

    wallet, entry = payment_service.add_money(
        ctx.user_id,
        data.get("amount"),
        data.get("transactionType", "recharge"),
        reason=data.get("reason"),
    )

    payload = {
        "wallet": wallet_schema.dump(wallet),
        "history": history_schema.dump(entry),
    }
    if entry.status == EntryStatus.PENDING:
        payload["paymentDetails"] = {
            "message": "Recharge will be credited once the payment is confirmed",
            "entryId": entry.id,
        }
    return success_response(payload)


@bp.route("/pay", methods=["POST"])
@jwt_required()
def pay():
    ctx = current_identity()
    data = request.get_json(silent=True) or {}

    remaining, entry = payment_service.process_payment(
        ctx.user_id, data.get("amount"), data.get("reason")
    )
    return success_response({
        "remainingBalance": _money(remaining),
        "transaction": history_schema.dump(entry),
    })


@bp.route("/withdraw", methods=["POST"])
@jwt_required()
def withdraw():
    ctx = current_identity()
    data = request.get_json(silent=True) or {}

    remaining, entry = payment_service.request_withdrawal(
        ctx.user_id, data.get("amount"), data.get("bankDetails")
    )
    return success_response({
        "remainingBalance": _money(remaining),
        "withdrawal": {
            "id": entry.id,
            "amount": float(entry.amount),
            "status": entry.status.value,
            "bankDetails": entry.bank_details,
            "createdAt": entry.created_at.isoformat(),
        },
    }, message="Withdrawal successful")


@bp.route("/recharge/settle", methods=["POST"])
def settle_recharge():
    payment_service.verify_webhook_signature(
        current_app.config.get("PAYMENT_WEBHOOK_SECRET"),
        request.get_data(),
        request.headers.get("X-Payment-Signature"),
    )
    entry = payment_service.settle_recharge(request.get_json(silent=True) or {})
    return success_response({"history": history_schema.dump(entry)})
