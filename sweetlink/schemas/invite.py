import uuid

from pydantic import BaseModel, ConfigDict

from sweetlink.models.relationship import RelationshipKind
from sweetlink.schemas._types import UTCDateTime


class InviteCreate(BaseModel):
    account_id: uuid.UUID | None = None


class InviteRedeem(BaseModel):
    account_id: uuid.UUID | None = None
    kind: RelationshipKind


class InviteResponse(BaseModel):
    id: uuid.UUID
    code: str
    owner_account_id: uuid.UUID
    status: str
    created_at: UTCDateTime
    expires_at: UTCDateTime
    redeemed_by_account_id: uuid.UUID | None = None
    redeemed_at: UTCDateTime | None = None
    revoked_at: UTCDateTime | None = None

    model_config = ConfigDict(from_attributes=True)
