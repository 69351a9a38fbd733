from marshmallow import fields

from clipverse.extensions import ma
from clipverse.utils.reasons import describe_reason, reason_to_dict


class WalletSchema(ma.Schema):
    id = fields.String()
    user_id = fields.String(data_key="userId")
    balance = fields.Float()
    currency = fields.String()
    created_at = fields.DateTime(data_key="createdAt")
    updated_at = fields.DateTime(data_key="updatedAt")


class WalletHistorySchema(ma.Schema):
    id = fields.String()
    user_id = fields.String(data_key="userId")
    type = fields.Function(lambda e: e.type.value)
    transaction_type = fields.Function(lambda e: e.transaction_type.value, data_key="transactionType")
    amount = fields.Float()
    reason = fields.Function(lambda e: reason_to_dict(e.reason))
    status = fields.Function(lambda e: e.status.value)
    gateway_id = fields.String(data_key="gatewayId")
    bank_details = fields.Raw(data_key="bankDetails")
    created_at = fields.DateTime(data_key="createdAt")
    updated_at = fields.DateTime(data_key="updatedAt")


class WalletHistoryDetailSchema(WalletHistorySchema):
    """History row with the referenced entity resolved for display."""
    reason_details = fields.Method("get_reason_details", data_key="reasonDetails")

    def get_reason_details(self, entry):
        reason = entry.reason
        if reason is None:
            return None
        return {"type": reason.kind.value, "details": describe_reason(reason)}


wallet_schema = WalletSchema()
history_schema = WalletHistorySchema()
history_list_schema = WalletHistoryDetailSchema(many=True)
