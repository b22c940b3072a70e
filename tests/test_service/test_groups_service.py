"""
Tests the group service layer against the in-memory backend.
"""

import pytest

from zaron.core.permission import Permission
from zaron.service import groups as groups_service
from zaron.service import hierarchy, membership
from zaron.service.hierarchy import HierarchyDepthError, ParentGroupNotFound
from zaron.service.policy import IneligibleMember, PolicyViolation


def mutations(backend):
    return [r for r in backend.requests if r.method != "GET"]


@pytest.mark.asyncio
async def test_fetch_dashboard(client, logger, group_ids, user_ids):
    dashboard = await groups_service.fetch_dashboard(client, logger)

    assert [g.display_name for g in dashboard.groups] == ["KYC Team", "Finance"]
    assert [s.display_name for s in dashboard.groups[0].sub_groups] == [
        "KYC Reviewers"
    ]

    # Super admins are never offered for assignment.
    assert user_ids["Sara"] not in [u.id for u in dashboard.users]
    assert user_ids["Omar"] in [u.id for u in dashboard.users]

    kyc = hierarchy.find_group(group_ids["KYC Team"], dashboard.groups)
    assert kyc.member_count == 1
    assert membership.role_in(user_ids["Omar"], kyc) == "team_lead"


@pytest.mark.asyncio
async def test_unknown_values_from_the_backend_are_kept(
    client, logger, backend, user_ids
):
    marketing = backend.add_group(
        "Marketing",
        department="marketing",
        permissions=[{"resource": "marketing:campaigns", "actions": ["read", "view"]}],
    )
    backend.add_membership(marketing, user_ids["Lina"], "observer")

    dashboard = await groups_service.fetch_dashboard(client, logger)

    group = hierarchy.find_group(marketing, dashboard.groups)
    assert group.department == "marketing"
    assert group.permissions[0].actions == {"read", "view"}
    assert membership.role_in(user_ids["Lina"], group) == "observer"


@pytest.mark.asyncio
async def test_create_group(client, logger, super_admin):
    dashboard = await groups_service.create_group(
        super_admin,
        "Property Ops",
        client,
        logger,
        department="property-management",
        permissions=[
            Permission(resource="properties:listings", actions={"view"}),
            Permission(resource="properties:listings", actions={"delete"}),
        ],
    )

    created = next(g for g in dashboard.groups if g.display_name == "Property Ops")
    assert created.name == "property_ops"
    assert created.department == "property-management"
    assert created.permissions == [
        Permission(resource="properties:listings", actions={"view"})
    ]


@pytest.mark.asyncio
async def test_create_group_is_refused_before_sending(
    client, logger, team_member, backend
):
    with pytest.raises(PolicyViolation):
        await groups_service.create_group(team_member, "Nope", client, logger)

    assert mutations(backend) == []


@pytest.mark.asyncio
async def test_only_super_admin_assigns_a_new_groups_lead(
    admin_client, logger, admin, user_ids, backend
):
    with pytest.raises(PolicyViolation, match="manage team leads"):
        await groups_service.create_group(
            admin, "Ops Desk", admin_client, logger, team_lead_id=user_ids["Omar"]
        )

    assert mutations(backend) == []


@pytest.mark.asyncio
async def test_new_groups_lead_is_checked(
    client, logger, super_admin, user_ids, backend
):
    with pytest.raises(PolicyViolation, match="already team lead of KYC Team"):
        await groups_service.create_group(
            super_admin, "Ops Desk", client, logger, team_lead_id=user_ids["Omar"]
        )

    with pytest.raises(IneligibleMember, match="team lead"):
        await groups_service.create_group(
            super_admin, "Ops Desk", client, logger, team_lead_id=user_ids["Lina"]
        )

    assert mutations(backend) == []

    huda = backend.add_admin("Huda", "Alzahrani", "huda@zaron.sa", "admin")
    dashboard = await groups_service.create_group(
        super_admin, "Ops Desk", client, logger, team_lead_id=huda
    )

    created = next(g for g in dashboard.groups if g.display_name == "Ops Desk")
    assert membership.role_in(huda, created) == "team_lead"


@pytest.mark.asyncio
async def test_sub_group_copies_parent_permissions(
    client, logger, super_admin, group_ids, backend
):
    finance = group_ids["Finance"]

    dashboard = await groups_service.create_sub_group(
        super_admin, finance, "Finance Audit", client, logger
    )

    root = next(g for g in dashboard.groups if g.id == finance)
    sub_group = root.sub_groups[0]
    assert sub_group.display_name == "Finance Audit"
    assert sub_group.department == "finance"
    assert sub_group.permissions == root.permissions

    # A copy: changing the parent later does not reach the sub-group.
    dashboard = await groups_service.update_group_permissions(
        super_admin,
        finance,
        [Permission(resource="finance:transactions", actions={"view"})],
        client,
        logger,
    )
    root = next(g for g in dashboard.groups if g.id == finance)
    assert root.permissions[0].resource == "finance:transactions"
    assert root.sub_groups[0].permissions[0].resource == "finance:reports"


@pytest.mark.asyncio
async def test_sub_group_nesting_is_capped(client, logger, super_admin, group_ids):
    with pytest.raises(HierarchyDepthError):
        await groups_service.create_sub_group(
            super_admin, group_ids["KYC Reviewers"], "Too Deep", client, logger
        )

    with pytest.raises(ParentGroupNotFound):
        await groups_service.create_sub_group(
            super_admin, "missing", "Orphan", client, logger
        )


@pytest.mark.asyncio
async def test_delete_group(client, logger, super_admin, group_ids):
    dashboard = await groups_service.delete_group(
        super_admin, group_ids["Finance"], client, logger
    )

    assert group_ids["Finance"] not in [g.id for g in dashboard.groups]


@pytest.mark.asyncio
async def test_add_member_inherits_without_override(
    client, logger, super_admin, group_ids, user_ids, backend
):
    finance = group_ids["Finance"]
    lina = user_ids["Lina"]

    dashboard = await groups_service.add_member(
        super_admin, finance, lina, "team_member", client, logger
    )

    group = hierarchy.find_group(finance, dashboard.groups)
    assert membership.is_member(lina, group)
    assert membership.effective_permissions(lina, group) == group.permissions

    body = mutations(backend)[-1].content
    assert b"memberPermissions" not in body


@pytest.mark.asyncio
async def test_lead_admin_adds_team_members_only(
    admin_client, logger, admin, group_ids, user_ids
):
    kyc = group_ids["KYC Team"]

    dashboard = await groups_service.add_member(
        admin, kyc, user_ids["Lina"], "team_member", admin_client, logger
    )
    group = hierarchy.find_group(kyc, dashboard.groups)
    assert membership.is_member(user_ids["Lina"], group)

    with pytest.raises(PolicyViolation):
        await groups_service.add_member(
            admin, kyc, user_ids["Yousef"], "team_lead", admin_client, logger
        )

    # Omar does not lead Finance.
    with pytest.raises(PolicyViolation):
        await groups_service.add_member(
            admin,
            group_ids["Finance"],
            user_ids["Lina"],
            "team_member",
            admin_client,
            logger,
        )


@pytest.mark.asyncio
async def test_a_user_leads_one_group(
    client, logger, super_admin, group_ids, user_ids
):
    with pytest.raises(PolicyViolation, match="already team lead"):
        await groups_service.add_member(
            super_admin,
            group_ids["Finance"],
            user_ids["Omar"],
            "team_lead",
            client,
            logger,
        )


@pytest.mark.asyncio
async def test_member_override(client, logger, super_admin, group_ids, user_ids):
    reviewers = group_ids["KYC Reviewers"]
    lina = user_ids["Lina"]
    override = [Permission(resource="kyc:verification", actions={"view", "verify"})]

    dashboard = await groups_service.update_member_permissions(
        super_admin, reviewers, lina, override, client, logger
    )
    group = hierarchy.find_group(reviewers, dashboard.groups)
    assert membership.effective_permissions(lina, group) == override

    # Clearing the override falls back to the group.
    dashboard = await groups_service.update_member_permissions(
        super_admin, reviewers, lina, [], client, logger
    )
    group = hierarchy.find_group(reviewers, dashboard.groups)
    assert membership.effective_permissions(lina, group) == group.permissions


@pytest.mark.asyncio
async def test_remove_member(client, logger, super_admin, group_ids, user_ids):
    reviewers = group_ids["KYC Reviewers"]

    dashboard = await groups_service.remove_member(
        super_admin, reviewers, user_ids["Lina"], client, logger
    )
    group = hierarchy.find_group(reviewers, dashboard.groups)
    assert group.members == []
    assert group.member_count == 0

    with pytest.raises(groups_service.MemberNotFound):
        await groups_service.remove_member(
            super_admin, reviewers, user_ids["Lina"], client, logger
        )

    with pytest.raises(groups_service.GroupNotFound):
        await groups_service.remove_member(
            super_admin, "missing", user_ids["Lina"], client, logger
        )


@pytest.mark.asyncio
async def test_admin_cannot_remove_a_team_lead(
    admin_client, logger, admin, group_ids, user_ids
):
    with pytest.raises(PolicyViolation, match="manage team leads"):
        await groups_service.remove_member(
            admin, group_ids["KYC Team"], user_ids["Omar"], admin_client, logger
        )


@pytest.mark.asyncio
async def test_role_category_needs_an_eligible_user(
    client, logger, super_admin, group_ids, user_ids, backend
):
    finance = group_ids["Finance"]

    # Lina is a team member, not an admin.
    with pytest.raises(IneligibleMember, match="as team lead"):
        await groups_service.add_member(
            super_admin, finance, user_ids["Lina"], "team_lead", client, logger
        )

    # Omar is an admin, so he may only lead.
    with pytest.raises(IneligibleMember, match="as team member"):
        await groups_service.add_member(
            super_admin, finance, user_ids["Omar"], "team_member", client, logger
        )

    assert mutations(backend) == []
