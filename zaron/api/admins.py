"""
Staff account management.
"""

from fastapi import APIRouter

from zaron.core.models import AdminCreationRequest, CamelModel, PromoteUserRequest
from zaron.core.permission import Permission
from zaron.core.user import AdminUserData, RegularUserData
from zaron.service import admins as admins_service
from zaron.service.access import ViewerAccess

from .dependencies import ClientDependency, LoggerDependency, ViewerDependency

admin_routes = APIRouter(tags=["Staff Management"])


class AdminListing(CamelModel):
    admins: list[AdminUserData]
    role_counts: dict[str, int]


@admin_routes.get(
    "",
    summary="List staff accounts",
    description=(
        "Retrieve staff accounts, optionally filtered by role and by a "
        "case-insensitive search over name and email. Role counts are taken "
        "over the unfiltered list."
    ),
    responses={
        200: {"description": "Staff accounts and per-role counts."},
    },
)
async def list_admins(
    viewer: ViewerDependency,
    client: ClientDependency,
    log: LoggerDependency,
    role: str | None = None,
    search: str = "",
) -> AdminListing:
    log = log.bind(viewer_id=viewer.user_id)
    admins = await admins_service.list_admins(client=client, log=log)

    return AdminListing(
        admins=admins_service.filter_admins(admins, role=role, search=search),
        role_counts=admins_service.role_counts(admins),
    )


@admin_routes.post(
    "",
    summary="Create a staff account",
    description=(
        "Create a staff account in the pending state; a super admin has to "
        "approve it before it can be used. Team leads must be assigned to "
        "exactly one department group."
    ),
    responses={
        200: {"description": "Account created, fresh staff list returned."},
        400: {"description": "Invalid role or department selection."},
        403: {"description": "Not allowed to create staff accounts."},
    },
)
async def create_admin(
    content: AdminCreationRequest,
    viewer: ViewerDependency,
    client: ClientDependency,
    log: LoggerDependency,
) -> list[AdminUserData]:
    return await admins_service.create_admin(viewer, content, client, log)


@admin_routes.post(
    "/promote",
    summary="Promote a user to a staff role",
    description="Give an existing platform user a staff role.",
    responses={
        200: {"description": "User promoted, fresh staff list returned."},
        400: {"description": "Invalid role."},
        403: {"description": "Not allowed to promote users."},
    },
)
async def promote_user(
    content: PromoteUserRequest,
    viewer: ViewerDependency,
    client: ClientDependency,
    log: LoggerDependency,
) -> list[AdminUserData]:
    return await admins_service.promote_user(
        viewer, content.user_id, content.role, client, log
    )


@admin_routes.get(
    "/eligible-users",
    summary="Users eligible for promotion",
    responses={
        200: {"description": "Platform users without a staff role."},
    },
)
async def list_eligible_users(
    viewer: ViewerDependency,
    client: ClientDependency,
    log: LoggerDependency,
) -> list[RegularUserData]:
    log = log.bind(viewer_id=viewer.user_id)
    return await admins_service.list_eligible_users(client=client, log=log)


class AccessSummary(CamelModel):
    user_id: str | None
    role: str | None
    effective_permissions: list[Permission]
    administration: bool
    group_management: bool
    approvals: bool
    admin_roles: bool


@admin_routes.get(
    "/me",
    summary="Permissions of the current user",
    description=(
        "The current user's role and effective permissions, with the sections "
        "of the dashboard they may open. The backend enforces the same rules."
    ),
    responses={
        200: {"description": "Role, permissions and section access."},
    },
)
async def my_permissions(
    client: ClientDependency,
    log: LoggerDependency,
) -> AccessSummary:
    content = await client.my_permissions()
    access = ViewerAccess.from_my_permissions(content)
    await log.adebug("admin.my_permissions", user_id=content.user_id, role=access.role)

    return AccessSummary(
        user_id=content.user_id,
        role=access.role,
        effective_permissions=access.permissions,
        administration=access.can_access_administration(),
        group_management=access.can_access_group_management(),
        approvals=access.can_access_approvals(),
        admin_roles=access.can_access_admin_roles(),
    )
