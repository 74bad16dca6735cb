import uuid

from pydantic import BaseModel, ConfigDict

from sweetlink.schemas._types import UTCDateTime


class RelationshipResponse(BaseModel):
    id: uuid.UUID
    account_a_id: uuid.UUID
    account_b_id: uuid.UUID
    kind: str
    invite_code_id: uuid.UUID | None = None
    established_at: UTCDateTime
    model_config = ConfigDict(from_attributes=True)
