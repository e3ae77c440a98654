# taskboard/schemas/user.py
import re
from datetime import datetime
from typing import List, Optional

from pydantic import EmailStr, Field, field_validator

from taskboard.models.user import UserRole
from taskboard.schemas.common import CamelModel, Pagination

USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_]+$")


class UserFields(CamelModel):
    username: str = Field(..., min_length=3, max_length=30)
    email: EmailStr
    role: UserRole = UserRole.USER

    @field_validator("username", mode="before")
    @classmethod
    def strip_username(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("username")
    @classmethod
    def check_username(cls, v: str) -> str:
        if not USERNAME_PATTERN.match(v):
            raise ValueError("Username can only contain letters, numbers, and underscores")
        return v

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v):
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("role", mode="before")
    @classmethod
    def lower_role(cls, v):
        if v is None:
            return UserRole.USER
        return v.lower() if isinstance(v, str) else v


class UserRegister(UserFields):
    password: str = Field(..., min_length=6)


class AdminUserCreate(UserFields):
    # Omitted => a one-time password is generated and emailed
    password: Optional[str] = Field(None, min_length=6)


class UserRoleUpdate(CamelModel):
    role: str


class UserOut(CamelModel):
    id: int
    username: str
    email: str
    role: str
    email_verified: bool
    admin_provisioned: bool
    requires_password_setup: bool
    created_at: datetime
    updated_at: Optional[datetime] = None


class IdentityOut(CamelModel):
    id: int
    username: str
    email: str
    role: str


class UserEnvelope(CamelModel):
    message: Optional[str] = None
    user: UserOut


class AdminUserCreated(UserEnvelope):
    email_sent: bool


class UserList(CamelModel):
    users: List[UserOut]
    pagination: Pagination
