"""
Rules for who may change groups, memberships and staff accounts. Checked
before a mutation is sent; the backend remains the final arbiter, so a pass
here only means the request is worth sending.
"""

from collections.abc import Iterable

from pydantic import BaseModel

from zaron.core.group import GroupData, GroupNode
from zaron.core.models import AdminCreationRequest
from zaron.core.user import SYSTEM_ROLES, AdminUserData

from . import membership

GROUP_ADMIN_ROLES = ("super_admin", "admin")

# Roles that may be handed out through the create-admin form.
CREATABLE_ROLES = tuple(r for r in SYSTEM_ROLES if r != "super_admin")

# Existing platform users may only be promoted to a staff function.
PROMOTABLE_ROLES = (
    "admin",
    "kyc_officer",
    "property_manager",
    "financial_analyst",
    "compliance_officer",
)


class PolicyViolation(Exception):
    """
    The viewer lacks the permission the mutation needs. The message names it.
    """


class RoleValidationError(ValueError):
    pass


class DepartmentSelectionError(ValueError):
    pass


class IneligibleMember(ValueError):
    """
    The user cannot hold the requested role category in a group.
    """


class Viewer(BaseModel):
    """
    The staff member performing an action.
    """

    user_id: str
    role: str

    @property
    def is_super_admin(self) -> bool:
        return self.role == "super_admin"

    @property
    def is_group_admin(self) -> bool:
        return self.role in GROUP_ADMIN_ROLES


def can_create_group(viewer: Viewer) -> bool:
    return viewer.is_group_admin


def can_create_sub_group(viewer: Viewer) -> bool:
    return viewer.is_group_admin


def can_delete_group(viewer: Viewer) -> bool:
    return viewer.is_group_admin


def can_edit_group_permissions(viewer: Viewer) -> bool:
    return viewer.is_group_admin


def can_assign_team_lead(viewer: Viewer) -> bool:
    return viewer.is_super_admin


def can_manage_member(viewer: Viewer, group: GroupData, role_category: str) -> bool:
    """
    Adding, removing, or editing the override of a member in `role_category`.

    Team leads are managed by super admins only. Team members may also be
    managed by an admin who leads the group themselves.
    """
    if role_category == "team_lead":
        return can_assign_team_lead(viewer)

    if viewer.is_super_admin:
        return True

    return (
        viewer.role == "admin"
        and membership.role_in(viewer.user_id, group) == "team_lead"
    )


def can_manage_staff(viewer: Viewer) -> bool:
    return viewer.is_group_admin


def _require(allowed: bool, permission: str):
    if not allowed:
        raise PolicyViolation(f"Missing permission: {permission}")


def check_create_group(viewer: Viewer):
    _require(can_create_group(viewer), "create groups (super admin or admin)")


def check_create_sub_group(viewer: Viewer):
    _require(can_create_sub_group(viewer), "create sub-groups (super admin or admin)")


def check_delete_group(viewer: Viewer):
    _require(can_delete_group(viewer), "delete groups (super admin or admin)")


def check_edit_group_permissions(viewer: Viewer):
    _require(
        can_edit_group_permissions(viewer),
        "edit group permissions (super admin or admin)",
    )


def check_manage_member(viewer: Viewer, group: GroupData, role_category: str):
    if role_category == "team_lead":
        permission = "manage team leads (super admin)"
    else:
        permission = (
            f"manage team members of {group.display_name} "
            "(super admin, or admin leading the group)"
        )
    _require(can_manage_member(viewer, group, role_category), permission)


def check_assign_team_lead(viewer: Viewer):
    _require(can_assign_team_lead(viewer), "manage team leads (super admin)")


def check_manage_staff(viewer: Viewer):
    _require(can_manage_staff(viewer), "manage staff accounts (super admin or admin)")


def check_single_team_lead(user_id: str, roots: Iterable[GroupNode]):
    """
    A user leads at most one group.

    Raises
    ------
    PolicyViolation
        If the user already leads a group somewhere in the hierarchy.
    """
    led = membership.team_lead_groups(user_id, roots)
    if led:
        raise PolicyViolation(
            f"User is already team lead of {led[0].display_name}; "
            "a user may lead only one group"
        )


def eligible_for(
    role_category: str, users: Iterable[AdminUserData]
) -> list[AdminUserData]:
    """
    The staff that may join a group in `role_category`: team leads are
    picked among admins, team members among everyone below admin.
    """
    if role_category == "team_lead":
        return [u for u in users if u.role == "admin"]
    return [u for u in users if u.role not in GROUP_ADMIN_ROLES]


def check_eligible(user_id: str, role_category: str, users: Iterable[AdminUserData]):
    """
    Raises
    ------
    IneligibleMember
        If `user_id` is not among `eligible_for(role_category, users)`.
    """
    if not any(u.id == user_id for u in eligible_for(role_category, users)):
        category = role_category.replace("_", " ")
        raise IneligibleMember(f"User {user_id} cannot be added as {category}")


def validate_role(role: str | None, allowed: Iterable[str]) -> str:
    """
    Check a role string from a form before anything is submitted.

    Raises
    ------
    RoleValidationError
        If the role is empty or not one of `allowed`.
    """
    allowed = tuple(allowed)
    role = (role or "").strip()

    if not role:
        raise RoleValidationError("Please select a valid role")

    if role not in allowed:
        raise RoleValidationError(
            f"Invalid role '{role}'. Must be one of: {', '.join(allowed)}"
        )

    return role


class DepartmentSelection:
    """
    The single-choice department picker for a team lead. Checking a group
    replaces any previous choice.
    """

    def __init__(self):
        self.selected: str | None = None

    def toggle(self, group_id: str) -> None:
        if self.selected == group_id:
            self.selected = None
        else:
            self.selected = group_id

    def clear(self) -> None:
        self.selected = None

    @property
    def group_ids(self) -> list[str]:
        return [self.selected] if self.selected is not None else []

    def require_exactly_one(self) -> str:
        return require_single_department(self.group_ids)


def require_single_department(group_ids: list[str]) -> str:
    """
    Raises
    ------
    DepartmentSelectionError
        Unless exactly one distinct group id is given.
    """
    group_ids = list(dict.fromkeys(group_ids))

    if not group_ids:
        raise DepartmentSelectionError("Please assign to at least one department")

    if len(group_ids) != 1:
        raise DepartmentSelectionError(
            "A team lead can only be assigned to one department"
        )

    return group_ids[0]


def validate_admin_creation(form: AdminCreationRequest) -> AdminCreationRequest:
    """
    Role and department rules for the create-admin flow. Returns the form to
    submit, with repeated group ids removed.
    """
    validate_role(form.role, CREATABLE_ROLES)

    form = form.model_copy(update={"group_ids": list(dict.fromkeys(form.group_ids))})

    if form.effective_role_category() == "team_lead":
        require_single_department(form.group_ids)

    return form
