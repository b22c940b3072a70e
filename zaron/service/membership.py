"""
Resolves which groups a user belongs to, in which role, and with which
permissions. Everything here is a pure read of already-fetched state; the
backend makes the real authorization decisions.
"""

from collections.abc import Iterable, Mapping

from pydantic import BaseModel

from zaron.core.group import GroupData, GroupNode, MemberUser, Membership
from zaron.core.permission import Permission
from zaron.core.user import AdminUserData

from .hierarchy import flatten


def member_user_id(member: Membership) -> str | None:
    """
    The id of the user behind a membership record.

    `member.user_id` is either a populated user object (use its id) or the
    raw id string. Records without it are flat user records whose own `_id`
    is the user's id.
    """
    match member.user_id:
        case MemberUser(id=user_id):
            return user_id
        case str() as user_id if user_id:
            return user_id
        case _:
            return member.membership_id


def find_membership(user_id: str, group: GroupData) -> Membership | None:
    for member in group.members:
        if member_user_id(member) == user_id:
            return member
    return None


def is_member(user_id: str, group: GroupData) -> bool:
    return find_membership(user_id, group) is not None


def memberships_of(user_id: str, roots: Iterable[GroupNode]) -> list[GroupData]:
    """
    All roots and sub-groups the user is a member of.
    """
    return [g for g in flatten(roots) if is_member(user_id, g)]


def role_in(user_id: str, group: GroupData) -> str | None:
    member = find_membership(user_id, group)
    return member.role_category if member is not None else None


def team_lead_groups(user_id: str, roots: Iterable[GroupNode]) -> list[GroupData]:
    return [g for g in flatten(roots) if role_in(user_id, g) == "team_lead"]


def effective_permissions(user_id: str, group: GroupData) -> list[Permission]:
    """
    The member's own permissions if they have a non-empty override,
    otherwise the group's. There is no per-resource merge between the two.
    Non-members get nothing.
    """
    member = find_membership(user_id, group)

    if member is None:
        return []

    if member.member_permissions:
        source = member.member_permissions
    else:
        source = group.permissions

    return [p.model_copy(deep=True) for p in source]


class MemberDisplay(BaseModel):
    user_id: str | None
    name: str
    email: str
    initials: str


def member_display(
    member: Membership, users: Mapping[str, AdminUserData] | None = None
) -> MemberDisplay:
    """
    Display fields for a member. Falls back through the populated user
    object, the flat fields on the record and the known user list, and
    finally to placeholders; never raises.
    """
    user_id = member_user_id(member)
    known = (users or {}).get(user_id) if user_id is not None else None
    nested = member.user_id if isinstance(member.user_id, MemberUser) else None

    def pick(field: str) -> str | None:
        for source in (nested, member, known):
            value = getattr(source, field, None) if source is not None else None
            if value:
                return value
        return None

    first_name = pick("first_name")
    last_name = pick("last_name")

    return MemberDisplay(
        user_id=user_id,
        name=f"{first_name or 'Unknown'} {last_name or 'User'}",
        email=pick("email") or "No email",
        initials=f"{(first_name or 'U')[0]}{(last_name or 'U')[0]}".upper(),
    )
