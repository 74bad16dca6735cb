import uuid

from pydantic import BaseModel, ConfigDict, EmailStr

from sweetlink.schemas._types import UTCDateTime


class AccountCreate(BaseModel):
    username: str
    email: EmailStr
    password: str
    password_confirm: str | None = None


class AccountResponse(BaseModel):
    id: uuid.UUID
    username: str
    email: str
    created_at: UTCDateTime
    model_config = ConfigDict(from_attributes=True)
