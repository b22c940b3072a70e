"""
Group management.
"""

from fastapi import APIRouter

from zaron.core.group import Department, GroupData, RoleCategory
from zaron.core.models import CamelModel
from zaron.core.permission import Permission, PermissionGrant
from zaron.service import groups as groups_service
from zaron.service import hierarchy, membership
from zaron.service.groups import Dashboard

from .dependencies import ClientDependency, LoggerDependency, ViewerDependency

group_app = APIRouter(tags=["Group Management"])


@group_app.get(
    "",
    summary="List the group hierarchy",
    description=(
        "Retrieve every root group with its sub-groups, together with the staff "
        "that can be assigned to groups. Root groups can be filtered by a "
        "case-insensitive search and by department."
    ),
    responses={
        200: {"description": "Group hierarchy and assignable users."},
    },
)
async def list_groups(
    viewer: ViewerDependency,
    client: ClientDependency,
    log: LoggerDependency,
    search: str = "",
    department: Department | None = None,
) -> Dashboard:
    log = log.bind(viewer_id=viewer.user_id)
    dashboard = await groups_service.fetch_dashboard(client=client, log=log)

    if search or department:
        keep = {
            g.id for g in hierarchy.filter_groups(dashboard.groups, search, department)
        }
        dashboard.groups = [g for g in dashboard.groups if g.id in keep]

    return dashboard


class MyGroup(CamelModel):
    group: GroupData
    role_category: str | None
    effective_permissions: list[Permission]


@group_app.get(
    "/mine",
    summary="Groups of the current user",
    description=(
        "Every root group and sub-group the current user belongs to, with their "
        "role in it and the permissions they hold there."
    ),
    responses={
        200: {"description": "The user's memberships."},
    },
)
async def my_groups(
    viewer: ViewerDependency,
    client: ClientDependency,
    log: LoggerDependency,
) -> list[MyGroup]:
    log = log.bind(viewer_id=viewer.user_id)
    dashboard = await groups_service.fetch_dashboard(client=client, log=log)

    return [
        MyGroup(
            group=group,
            role_category=membership.role_in(viewer.user_id, group),
            effective_permissions=membership.effective_permissions(
                viewer.user_id, group
            ),
        )
        for group in membership.memberships_of(viewer.user_id, dashboard.groups)
    ]


class GroupForm(CamelModel):
    display_name: str
    name: str | None = None
    description: str | None = None
    department: Department | None = None
    permissions: list[PermissionGrant] = []
    group_admin_id: str | None = None
    team_lead_id: str | None = None


@group_app.post(
    "",
    summary="Create a root group",
    description=(
        "Create a new root group. The machine name is derived from the display "
        "name when not given. Requires the super admin or admin role."
    ),
    responses={
        200: {"description": "Group created, fresh hierarchy returned."},
        400: {"description": "Invalid input data."},
        403: {"description": "Not allowed to create groups."},
    },
)
async def create_group(
    content: GroupForm,
    viewer: ViewerDependency,
    client: ClientDependency,
    log: LoggerDependency,
) -> Dashboard:
    return await groups_service.create_group(
        viewer,
        content.display_name,
        client,
        log,
        name=content.name,
        description=content.description,
        department=content.department,
        permissions=content.permissions,
        group_admin_id=content.group_admin_id,
        team_lead_id=content.team_lead_id,
    )


class SubGroupForm(CamelModel):
    display_name: str
    name: str | None = None
    description: str | None = None
    permissions: list[PermissionGrant] = []


@group_app.post(
    "/{group_id}/sub-groups",
    summary="Create a sub-group",
    description=(
        "Create a sub-group under a root group. Without permissions it starts "
        "from a copy of its parent's permissions and takes the parent's "
        "department. Sub-groups cannot be nested further."
    ),
    responses={
        200: {"description": "Sub-group created, fresh hierarchy returned."},
        400: {"description": "The parent is itself a sub-group."},
        403: {"description": "Not allowed to create sub-groups."},
        404: {"description": "Parent group not found."},
    },
)
async def create_sub_group(
    group_id: str,
    content: SubGroupForm,
    viewer: ViewerDependency,
    client: ClientDependency,
    log: LoggerDependency,
) -> Dashboard:
    return await groups_service.create_sub_group(
        viewer,
        group_id,
        content.display_name,
        client,
        log,
        name=content.name,
        description=content.description,
        permissions=content.permissions,
    )


@group_app.delete(
    "/{group_id}",
    summary="Delete a group",
    description="Delete a group and all of its memberships.",
    responses={
        200: {"description": "Group deleted, fresh hierarchy returned."},
        403: {"description": "Not allowed to delete groups."},
        404: {"description": "Group not found."},
    },
)
async def delete_group(
    group_id: str,
    viewer: ViewerDependency,
    client: ClientDependency,
    log: LoggerDependency,
) -> Dashboard:
    return await groups_service.delete_group(viewer, group_id, client, log)


class PermissionsForm(CamelModel):
    permissions: list[PermissionGrant]


@group_app.patch(
    "/{group_id}",
    summary="Replace a group's permissions",
    description=(
        "Replace the permissions of a group. Members without an override pick "
        "up the new permissions; sub-groups do not."
    ),
    responses={
        200: {"description": "Permissions updated, fresh hierarchy returned."},
        403: {"description": "Not allowed to edit group permissions."},
        404: {"description": "Group not found."},
    },
)
async def update_group_permissions(
    group_id: str,
    content: PermissionsForm,
    viewer: ViewerDependency,
    client: ClientDependency,
    log: LoggerDependency,
) -> Dashboard:
    return await groups_service.update_group_permissions(
        viewer, group_id, content.permissions, client, log
    )


class MemberForm(CamelModel):
    user_id: str
    role_category: RoleCategory = "team_member"
    member_permissions: list[PermissionGrant] = []


@group_app.post(
    "/{group_id}/members",
    summary="Add a member",
    description=(
        "Add a user to a group as team lead or team member. Team leads can only "
        "be assigned by a super admin, team members also by an admin leading "
        "the group. An empty permission list makes the member inherit the "
        "group's permissions."
    ),
    responses={
        200: {"description": "Member added, fresh hierarchy returned."},
        400: {"description": "The user cannot hold this role category."},
        403: {"description": "Not allowed to add this member."},
        404: {"description": "Group not found."},
    },
)
async def add_member(
    group_id: str,
    content: MemberForm,
    viewer: ViewerDependency,
    client: ClientDependency,
    log: LoggerDependency,
) -> Dashboard:
    return await groups_service.add_member(
        viewer,
        group_id,
        content.user_id,
        content.role_category,
        client,
        log,
        member_permissions=content.member_permissions,
    )


@group_app.delete(
    "/{group_id}/members/{user_id}",
    summary="Remove a member",
    description="Remove a user from a group.",
    responses={
        200: {"description": "Member removed, fresh hierarchy returned."},
        403: {"description": "Not allowed to remove this member."},
        404: {"description": "Group or member not found."},
    },
)
async def remove_member(
    group_id: str,
    user_id: str,
    viewer: ViewerDependency,
    client: ClientDependency,
    log: LoggerDependency,
) -> Dashboard:
    return await groups_service.remove_member(viewer, group_id, user_id, client, log)


class MemberPermissionsForm(CamelModel):
    member_permissions: list[PermissionGrant]


@group_app.put(
    "/{group_id}/members/{user_id}/permissions",
    summary="Replace a member's permission override",
    description=(
        "Replace the permissions a member holds in a group. An empty list "
        "removes the override."
    ),
    responses={
        200: {"description": "Override updated, fresh hierarchy returned."},
        403: {"description": "Not allowed to edit this member."},
        404: {"description": "Group or member not found."},
    },
)
async def update_member_permissions(
    group_id: str,
    user_id: str,
    content: MemberPermissionsForm,
    viewer: ViewerDependency,
    client: ClientDependency,
    log: LoggerDependency,
) -> Dashboard:
    return await groups_service.update_member_permissions(
        viewer, group_id, user_id, content.member_permissions, client, log
    )
