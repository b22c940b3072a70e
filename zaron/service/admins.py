"""
Service layer for staff (admin) accounts.
"""

from collections import Counter

from structlog.typing import FilteringBoundLogger

from zaron.core.models import AdminCreationRequest, PromoteUserRequest
from zaron.core.user import AdminUserData, RegularUserData
from zaron.toolkit.client import BackendClient

from . import policy
from .policy import Viewer


async def list_admins(
    client: BackendClient, log: FilteringBoundLogger
) -> list[AdminUserData]:
    admins = await client.list_admin_users()
    await log.adebug("admin.listed", number_of_admins=len(admins))
    return admins


def filter_admins(
    admins: list[AdminUserData], role: str | None = None, search: str = ""
) -> list[AdminUserData]:
    """
    Filter by role ("all" or None for every role) and by a case-insensitive
    search over email and full name.
    """
    search = search.strip().lower()

    return [
        admin
        for admin in admins
        if (role in (None, "all") or admin.role == role)
        and (
            not search
            or search in admin.email.lower()
            or search in admin.full_name.lower()
        )
    ]


def role_counts(admins: list[AdminUserData]) -> dict[str, int]:
    return dict(Counter(admin.role for admin in admins))


async def create_admin(
    viewer: Viewer,
    form: AdminCreationRequest,
    client: BackendClient,
    log: FilteringBoundLogger,
) -> list[AdminUserData]:
    """
    Create a staff account. It starts in `pending_verification` and needs a
    super admin's approval before it can log in.

    Returns
    -------
    list[AdminUserData]
        The re-fetched staff list.

    Raises
    ------
    PolicyViolation
        If the viewer may not manage staff.
    RoleValidationError
        If the role is empty or unknown.
    DepartmentSelectionError
        If a team lead is not assigned to exactly one department.
    """
    log = log.bind(viewer_id=viewer.user_id, email=form.email, role=form.role)

    policy.check_manage_staff(viewer)

    try:
        form = policy.validate_admin_creation(form)
    except (policy.RoleValidationError, policy.DepartmentSelectionError) as e:
        await log.ainfo("admin.create.invalid", error=str(e))
        raise

    await client.create_admin_user(form)
    await log.ainfo("admin.created", number_of_groups=len(form.group_ids))

    return await list_admins(client, log)


async def promote_user(
    viewer: Viewer,
    user_id: str,
    role: str | None,
    client: BackendClient,
    log: FilteringBoundLogger,
) -> list[AdminUserData]:
    """
    Promote an existing platform user to a staff role.

    Raises
    ------
    PolicyViolation
        If the viewer may not manage staff.
    RoleValidationError
        If the role is empty or not a promotable role.
    """
    log = log.bind(viewer_id=viewer.user_id, user_id=user_id, role=role)

    policy.check_manage_staff(viewer)

    try:
        role = policy.validate_role(role, policy.PROMOTABLE_ROLES)
    except policy.RoleValidationError as e:
        await log.ainfo("admin.promote.invalid", error=str(e))
        raise

    await client.promote_user(PromoteUserRequest(user_id=user_id, role=role))
    await log.ainfo("admin.promoted")

    return await list_admins(client, log)


async def list_eligible_users(
    client: BackendClient, log: FilteringBoundLogger
) -> list[RegularUserData]:
    users = await client.list_eligible_users()
    await log.adebug("admin.eligible_listed", number_of_users=len(users))
    return users
