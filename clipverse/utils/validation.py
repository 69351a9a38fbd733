from marshmallow import ValidationError as SchemaValidationError

from clipverse.utils.exceptions import ValidationError


def load_payload(schema, data, partial=False):
    try:
        return schema.load(data or {}, partial=partial)
    except SchemaValidationError as err:
        raise ValidationError("Invalid request data", details=err.messages)


def request_data(request):
    """Body of a JSON or multipart/form request as a plain dict."""
    if request.is_json:
        return request.get_json(silent=True) or {}
    return request.form.to_dict()
