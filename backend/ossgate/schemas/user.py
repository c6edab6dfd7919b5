from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1)
    password: str


class LoginResponse(BaseModel):
    token: str
    expires_in: int
    username: str


class OperatorRead(BaseModel):
    username: str


class OAuthUserInfo(BaseModel):
    model_config = ConfigDict(extra="ignore")

    sub: str
    username: str
    email: str | None = None
    permissions: Any = None


class OAuthTokenResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    access_token: str
    token_type: str = "bearer"
    expires_in: int | None = None
    refresh_token: str | None = None
    scope: str | None = None
