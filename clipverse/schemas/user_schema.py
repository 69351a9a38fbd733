from marshmallow import EXCLUDE, fields, pre_load, validate

from clipverse.extensions import ma


class RegisterSchema(ma.Schema):
    class Meta:
        unknown = EXCLUDE

    phone = fields.String(required=True, validate=validate.Length(min=4, max=32))
    name = fields.String(required=True, validate=validate.Length(min=1, max=255))
    username = fields.String(
        required=True,
        validate=[
            validate.Length(min=3, max=64),
            validate.Regexp(r"^[A-Za-z0-9_.]+$", error="Only letters, digits, '_' and '.' are allowed"),
        ],
    )
    date_of_birth = fields.Date(required=True, data_key="dateOfBirth")
    gender = fields.String(required=True, validate=validate.OneOf(["male", "female", "other"]))
    preference = fields.List(fields.String(), load_default=list)
    video_language = fields.String(data_key="videoLanguage", load_default=None)
    location = fields.String(load_default=None)

    @pre_load
    def split_preference(self, data, **kwargs):
        # multipart forms send the list as a comma separated string
        data = dict(data)
        pref = data.get("preference")
        if isinstance(pref, str):
            data["preference"] = [p.strip() for p in pref.split(",") if p.strip()]
        return data


class ProfileUpdateSchema(ma.Schema):
    class Meta:
        unknown = EXCLUDE

    name = fields.String(validate=validate.Length(min=1, max=255))
    bio = fields.String(validate=validate.Length(max=2000))


class UserSummarySchema(ma.Schema):
    id = fields.String()
    name = fields.String()
    username = fields.String()
    profile_photo = fields.String(data_key="profilePhoto")
