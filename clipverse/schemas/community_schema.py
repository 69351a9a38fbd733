from marshmallow import EXCLUDE, fields, validate

from clipverse.extensions import ma
from clipverse.schemas.user_schema import UserSummarySchema


class CommunityCreateSchema(ma.Schema):
    class Meta:
        unknown = EXCLUDE

    name = fields.String(required=True, validate=validate.Length(min=1, max=255))
    bio = fields.String(load_default=None, validate=validate.Length(max=2000))
    cost = fields.Raw(load_default=None)


class CommunityUpdateSchema(ma.Schema):
    class Meta:
        unknown = EXCLUDE

    bio = fields.String(validate=validate.Length(max=2000))
    cost = fields.Raw()


class CommunitySchema(ma.Schema):
    id = fields.String()
    name = fields.String()
    bio = fields.String()
    profile_photo = fields.String()
    founder_id = fields.String(data_key="founder")
    cost = fields.Float()
    created_at = fields.DateTime(data_key="createdAt")


class CommunityMemberSchema(ma.Schema):
    id = fields.String()
    community_id = fields.String(data_key="community")
    role = fields.Function(lambda m: m.role.value)
    joined_at = fields.DateTime(data_key="joinedAt")
    user = fields.Nested(UserSummarySchema)


community_schema = CommunitySchema()
communities_schema = CommunitySchema(many=True)
members_schema = CommunityMemberSchema(many=True)
