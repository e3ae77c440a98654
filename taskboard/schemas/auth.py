# taskboard/schemas/auth.py
from pydantic import EmailStr, Field, field_validator

from taskboard.schemas.common import CamelModel
from taskboard.schemas.user import IdentityOut, UserOut


class UserLogin(CamelModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)

    @field_validator("username", mode="before")
    @classmethod
    def strip_username(cls, v):
        return v.strip() if isinstance(v, str) else v


class Token(CamelModel):
    message: str = "Login successful"
    token: str
    token_type: str = "bearer"
    user: IdentityOut


class VerifyEmailRequest(CamelModel):
    token: str = Field(..., min_length=64, max_length=64)


class VerifyEmailResponse(CamelModel):
    message: str
    user: UserOut
    requires_password_setup: bool = False


class SetPasswordRequest(CamelModel):
    token: str = Field(..., min_length=64, max_length=64)
    # Length is checked by the service so a short password reports WeakPassword
    password: str


class ResendVerificationRequest(CamelModel):
    email: EmailStr

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v):
        return v.strip().lower() if isinstance(v, str) else v


class RevokeSessionsResponse(CamelModel):
    message: str
    revoked_count: int

