from pydantic import BaseModel

from sweetlink.schemas.account import AccountResponse


class LoginRequest(BaseModel):
    email: str
    password: str


class SessionResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    account: AccountResponse


class RefreshRequest(BaseModel):
    refresh_token: str
