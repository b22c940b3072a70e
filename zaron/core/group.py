"""
Core group data models.
"""

import re
from typing import Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from .permission import Permission
from .user import RoleRef

RoleCategory = Literal["team_lead", "team_member"]

Department = Literal[
    "kyc",
    "finance",
    "compliance",
    "operations",
    "property-management",
    "user-management",
    "analytics",
    "admin",
    "other",
]


def derive_group_name(display_name: str) -> str:
    """
    Machine key for a group: lower case, whitespace runs become underscores.
    """
    return re.sub(r"\s+", "_", display_name.strip().lower())


class MemberUser(BaseModel):
    """
    The populated user object some backend responses nest in a membership.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(validation_alias=AliasChoices("_id", "id"))
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None


class Membership(BaseModel):
    """
    A user's membership of one group. The backend sends either a raw user id
    string or a populated user object in `userId`; older records carry the
    user's fields (and id) directly on the membership.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    membership_id: str | None = Field(
        default=None, validation_alias=AliasChoices("_id", "membershipId")
    )
    user_id: MemberUser | str | None = None
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    # "team_lead" or "team_member"; other values are kept as sent.
    role_category: str | None = None
    member_permissions: list[Permission] | None = None


class GroupData(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(validation_alias=AliasChoices("_id", "id"))
    name: str
    display_name: str
    description: str | None = None
    department: str | None = None
    permissions: list[Permission] = []
    parent_group_id: str | None = None
    members: list[Membership] = []
    member_count: int = 0
    is_active: bool = True
    default_role: RoleRef | None = None

    @model_validator(mode="before")
    @classmethod
    def flatten_parent(cls, data):
        # Populated parents arrive as objects rather than ids.
        if isinstance(data, dict):
            parent = data.get("parentGroupId", data.get("parent_group_id"))
            if isinstance(parent, dict):
                data = dict(data)
                data.pop("parent_group_id", None)
                data["parentGroupId"] = parent.get("_id", parent.get("id"))
        return data

    @model_validator(mode="after")
    def derive_member_count(self):
        self.member_count = len(self.members)
        return self

    @property
    def is_sub_group(self) -> bool:
        return self.parent_group_id is not None


class GroupNode(GroupData):
    """
    A root group with its sub-groups attached.
    """

    sub_groups: list[GroupData] = []
