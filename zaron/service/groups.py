"""
Service layer for groups. Every mutation is checked against the policy,
sent to the backend, and answered with a fresh copy of the whole dashboard;
local state is never patched in place.
"""

import asyncio

from pydantic import BaseModel
from structlog.typing import FilteringBoundLogger

from zaron.core.group import GroupData, GroupNode, derive_group_name
from zaron.core.models import AddMemberRequest, GroupCreationRequest
from zaron.core.permission import Permission, normalize_permissions
from zaron.core.user import AdminUserData
from zaron.toolkit.client import BackendClient

from . import hierarchy, membership, policy
from .policy import Viewer


class GroupNotFound(Exception):
    pass


class MemberNotFound(Exception):
    pass


class Dashboard(BaseModel):
    groups: list[GroupNode]
    # Users that can be assigned to groups; super admins never are.
    users: list[AdminUserData]


async def fetch_dashboard(
    client: BackendClient, log: FilteringBoundLogger
) -> Dashboard:
    """
    Fetch groups and staff in parallel and build the group tree.
    """
    groups, admins = await asyncio.gather(
        client.list_groups(), client.list_admin_users()
    )

    roots = hierarchy.build_hierarchy(groups, log=log)
    users = [u for u in admins if u.role != "super_admin"]

    await log.adebug(
        "group.dashboard_fetched",
        number_of_groups=len(groups),
        number_of_roots=len(roots),
        number_of_users=len(users),
    )

    return Dashboard(groups=roots, users=users)


def _find(group_id: str, dashboard: Dashboard) -> GroupData:
    group = hierarchy.find_group(group_id, dashboard.groups)
    if group is None:
        raise GroupNotFound(f"Group with id {group_id} not found")
    return group


async def create_group(
    viewer: Viewer,
    display_name: str,
    client: BackendClient,
    log: FilteringBoundLogger,
    *,
    name: str | None = None,
    description: str | None = None,
    department: str | None = None,
    permissions: list[Permission] | None = None,
    group_admin_id: str | None = None,
    team_lead_id: str | None = None,
) -> Dashboard:
    """
    Create a root group.

    Parameters
    ----------
    display_name: str
        Human readable name; the machine `name` is derived from it unless
        given explicitly.
    permissions: list[Permission] | None, optional
        Permissions for the group's members, de-duplicated by resource.

    Raises
    ------
    PolicyViolation
        If the viewer may not create groups or assign team leads, or the
        team lead already leads another group.
    IneligibleMember
        If the team lead is not an admin.
    """
    name = name or derive_group_name(display_name)
    log = log.bind(viewer_id=viewer.user_id, group_name=name, department=department)

    policy.check_create_group(viewer)

    if team_lead_id is not None:
        log = log.bind(team_lead_id=team_lead_id)
        try:
            policy.check_assign_team_lead(viewer)
            dashboard = await fetch_dashboard(client, log)
            policy.check_eligible(team_lead_id, "team_lead", dashboard.users)
            policy.check_single_team_lead(team_lead_id, dashboard.groups)
        except (policy.PolicyViolation, policy.IneligibleMember):
            await log.awarning("group.create.team_lead_refused")
            raise

    content = GroupCreationRequest(
        name=name,
        display_name=display_name,
        description=description,
        department=department,
        permissions=normalize_permissions(permissions or []),
        group_admin_id=group_admin_id,
        team_lead_id=team_lead_id,
    )

    await client.create_group(content)
    await log.ainfo("group.created")

    return await fetch_dashboard(client, log)


async def create_sub_group(
    viewer: Viewer,
    parent_group_id: str,
    display_name: str,
    client: BackendClient,
    log: FilteringBoundLogger,
    *,
    name: str | None = None,
    description: str | None = None,
    permissions: list[Permission] | None = None,
) -> Dashboard:
    """
    Create a sub-group under a root group. Without explicit permissions the
    sub-group starts from a copy of its parent's; later edits to the parent
    do not carry over.

    Raises
    ------
    PolicyViolation
        If the viewer is neither a super admin nor an admin.
    hierarchy.ParentGroupNotFound
        If the parent does not exist.
    hierarchy.HierarchyDepthError
        If the parent is itself a sub-group.
    """
    name = name or derive_group_name(display_name)
    log = log.bind(
        viewer_id=viewer.user_id, group_name=name, parent_group_id=parent_group_id
    )

    policy.check_create_sub_group(viewer)

    groups = await client.list_groups()
    parent = hierarchy.check_parent(parent_group_id, groups)

    if permissions:
        permissions = normalize_permissions(permissions)
    else:
        permissions = normalize_permissions(parent.permissions)

    content = GroupCreationRequest(
        name=name,
        display_name=display_name,
        description=description,
        department=parent.department,
        permissions=permissions,
        parent_group_id=parent.id,
    )

    await client.create_group(content)
    await log.ainfo("group.sub_group_created")

    return await fetch_dashboard(client, log)


async def delete_group(
    viewer: Viewer, group_id: str, client: BackendClient, log: FilteringBoundLogger
) -> Dashboard:
    """
    Delete a group, and with it all of its memberships.
    """
    log = log.bind(viewer_id=viewer.user_id, group_id=group_id)

    policy.check_delete_group(viewer)

    await client.delete_group(group_id)
    await log.ainfo("group.deleted")

    return await fetch_dashboard(client, log)


async def update_group_permissions(
    viewer: Viewer,
    group_id: str,
    permissions: list[Permission],
    client: BackendClient,
    log: FilteringBoundLogger,
) -> Dashboard:
    log = log.bind(viewer_id=viewer.user_id, group_id=group_id)

    policy.check_edit_group_permissions(viewer)

    await client.update_group_permissions(group_id, normalize_permissions(permissions))
    await log.ainfo("group.permissions_updated", number_of_resources=len(permissions))

    return await fetch_dashboard(client, log)


async def add_member(
    viewer: Viewer,
    group_id: str,
    user_id: str,
    role_category: str,
    client: BackendClient,
    log: FilteringBoundLogger,
    member_permissions: list[Permission] | None = None,
) -> Dashboard:
    """
    Add a user to a group as team lead or team member.

    Parameters
    ----------
    member_permissions: list[Permission] | None, optional
        An override for this member. Left empty, the member inherits the
        group's permissions.

    Raises
    ------
    GroupNotFound
        If the group is not in the current dashboard.
    PolicyViolation
        If the viewer may not manage members of this category here, or a
        team lead already leads another group.
    IneligibleMember
        If the user cannot hold this role category, see `policy.eligible_for`.
    """
    log = log.bind(
        viewer_id=viewer.user_id,
        group_id=group_id,
        user_id=user_id,
        role_category=role_category,
    )

    dashboard = await fetch_dashboard(client, log)
    group = _find(group_id, dashboard)

    try:
        policy.check_manage_member(viewer, group, role_category)
        policy.check_eligible(user_id, role_category, dashboard.users)
        if role_category == "team_lead":
            policy.check_single_team_lead(user_id, dashboard.groups)
    except (policy.PolicyViolation, policy.IneligibleMember):
        await log.awarning("group.add_member.access_denied")
        raise

    content = AddMemberRequest(
        user_id=user_id,
        role_category=role_category,
        member_permissions=(
            normalize_permissions(member_permissions) if member_permissions else None
        ),
    )

    await client.add_member(group_id, content)
    await log.ainfo(
        "group.member_added", overridden=content.member_permissions is not None
    )

    return await fetch_dashboard(client, log)


async def remove_member(
    viewer: Viewer,
    group_id: str,
    user_id: str,
    client: BackendClient,
    log: FilteringBoundLogger,
) -> Dashboard:
    """
    Remove a user from a group. The same rule as for adding a member of the
    user's role category applies.

    Raises
    ------
    GroupNotFound
        If the group is not in the current dashboard.
    MemberNotFound
        If the user is not a member of the group.
    PolicyViolation
        If the viewer may not manage this member.
    """
    log = log.bind(viewer_id=viewer.user_id, group_id=group_id, user_id=user_id)

    dashboard = await fetch_dashboard(client, log)
    group = _find(group_id, dashboard)
    member = membership.find_membership(user_id, group)

    if member is None:
        await log.ainfo("group.user_not_member")
        raise MemberNotFound(f"User {user_id} is not a member of {group.display_name}")

    policy.check_manage_member(viewer, group, member.role_category or "team_member")

    await client.remove_member(group_id, user_id)
    await log.ainfo("group.member_removed")

    return await fetch_dashboard(client, log)


async def update_member_permissions(
    viewer: Viewer,
    group_id: str,
    user_id: str,
    permissions: list[Permission],
    client: BackendClient,
    log: FilteringBoundLogger,
) -> Dashboard:
    """
    Replace a member's override. An empty list removes the override, so the
    member falls back to the group's permissions.
    """
    log = log.bind(viewer_id=viewer.user_id, group_id=group_id, user_id=user_id)

    dashboard = await fetch_dashboard(client, log)
    group = _find(group_id, dashboard)
    member = membership.find_membership(user_id, group)

    if member is None:
        await log.ainfo("group.user_not_member")
        raise MemberNotFound(f"User {user_id} is not a member of {group.display_name}")

    policy.check_manage_member(viewer, group, member.role_category or "team_member")

    await client.update_member_permissions(
        group_id, user_id, normalize_permissions(permissions)
    )
    await log.ainfo(
        "group.member_permissions_updated", number_of_resources=len(permissions)
    )

    return await fetch_dashboard(client, log)
