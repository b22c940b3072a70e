"""
A shared staff user object, as returned by the backend.
"""

from datetime import datetime
from typing import Literal, get_args

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

SystemRole = Literal[
    "super_admin",
    "admin",
    "kyc_officer",
    "property_manager",
    "financial_analyst",
    "compliance_officer",
    "team_lead",
    "team_member",
]

UserStatus = Literal["pending_verification", "active", "rejected", "deactivated"]

SYSTEM_ROLES: tuple[str, ...] = get_args(SystemRole)
USER_STATUSES: tuple[str, ...] = get_args(UserStatus)

# Roles that belong to group membership rather than a staff function.
TEAM_ROLES = ("team_lead", "team_member")

ROLE_DISPLAY_NAMES = {
    "super_admin": "Super Admin",
    "admin": "Admin",
    "kyc_officer": "KYC Officer",
    "property_manager": "Property Manager",
    "financial_analyst": "Financial Analyst",
    "compliance_officer": "Compliance Officer",
    "team_lead": "Team Lead",
    "team_member": "Team Member",
}


def role_display_name(role: str) -> str:
    return ROLE_DISPLAY_NAMES.get(role, role)


class RoleRef(BaseModel):
    """
    Reference to a system-wide role definition.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(validation_alias=AliasChoices("_id", "id"))
    name: str
    display_name: str | None = None


class AdminUserData(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(validation_alias=AliasChoices("_id", "id"))
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str | None = None
    position: str | None = None
    # Kept as a plain string: the backend may know roles this client does not.
    role: str
    status: str = "pending_verification"
    created_at: datetime | None = None
    assigned_role: RoleRef | None = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class RegularUserData(BaseModel):
    """
    A platform (investor) account, as listed for promotion to staff.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(validation_alias=AliasChoices("_id", "id"))
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    kyc_status: str | None = None
    status: str | None = None
    email_verified: bool = False
