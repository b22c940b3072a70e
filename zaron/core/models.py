"""
Pydantic models for request/responses exchanged with the backend API.
"""

import re
from typing import Any

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    field_validator,
)
from pydantic.alias_generators import to_camel

from .group import RoleCategory
from .permission import Permission
from .user import AdminUserData, RegularUserData

SAUDI_PHONE = re.compile(r"^(\+966|966|0)?[5-9]\d{8}$")
STRONG_PASSWORD = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[@$!%*?&])")


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_body(self) -> dict[str, Any]:
        """
        JSON body for the backend: camelCase keys, unset optionals left out.
        """
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class BackendEnvelope(CamelModel):
    """
    `{success, message, data}` wrapper around every backend response. Older
    endpoints omit `success` (and may put their payload at the top level),
    so a missing flag counts as success.
    """

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="allow"
    )

    success: bool = True
    message: str | None = None
    data: Any = None


class GroupCreationRequest(CamelModel):
    name: str
    display_name: str
    description: str | None = None
    department: str | None = None
    permissions: list[Permission] = []
    parent_group_id: str | None = None
    group_admin_id: str | None = None
    team_lead_id: str | None = None


class GroupPermissionsUpdate(CamelModel):
    permissions: list[Permission]


class AddMemberRequest(CamelModel):
    user_id: str
    member_permissions: list[Permission] | None = None
    role_category: RoleCategory | None = None


class MemberPermissionsUpdate(CamelModel):
    member_permissions: list[Permission]


class AdminCreationRequest(CamelModel):
    """
    The create-admin form. Field rules follow the registration form; the role
    and department rules live in the mutation policy.
    """

    first_name: str = Field(min_length=2)
    last_name: str = Field(min_length=2)
    email: EmailStr
    phone: str | None = None
    position: str | None = None
    password: str = Field(min_length=8)
    role: str
    group_ids: list[str] = []
    # Not sent: decides the department rule. Defaults to the role when the
    # role is itself a team role.
    role_category: RoleCategory | None = Field(default=None, exclude=True)

    @field_validator("phone")
    @classmethod
    def check_phone(cls, value: str | None) -> str | None:
        if value is not None and not SAUDI_PHONE.match(value):
            raise ValueError("Valid Saudi phone number required")
        return value

    @field_validator("password")
    @classmethod
    def check_password(cls, value: str) -> str:
        if not STRONG_PASSWORD.match(value):
            raise ValueError(
                "Password must contain uppercase, lowercase, number and special character"
            )
        return value

    def effective_role_category(self) -> str | None:
        if self.role_category is not None:
            return self.role_category
        if self.role in ("team_lead", "team_member"):
            return self.role
        return None


class PromoteUserRequest(CamelModel):
    user_id: str
    role: str


class VerifyAdminRequest(CamelModel):
    admin_id: str
    approved: bool


class AdminUserList(CamelModel):
    admins: list[AdminUserData] = []


class EligibleUserList(CamelModel):
    users: list[RegularUserData] = []


class MyPermissions(CamelModel):
    user_id: str | None = Field(
        default=None, validation_alias=AliasChoices("userId", "user_id", "_id")
    )
    user_name: str | None = None
    email: str | None = None
    role: str
    effective_permissions: list[Permission] = []
