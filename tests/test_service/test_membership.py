"""
Tests resolving memberships, roles and effective permissions.
"""

from zaron.core.group import GroupData, Membership
from zaron.core.permission import Permission
from zaron.core.user import AdminUserData
from zaron.service import hierarchy, membership

KYC_VIEW = {"resource": "kyc:approval", "actions": ["view"]}


def group_from_backend(members: list[dict], **kwargs) -> GroupData:
    return GroupData.model_validate(
        {
            "_id": kwargs.pop("_id", "g1"),
            "name": "kyc_team",
            "displayName": "KYC Team",
            "permissions": [KYC_VIEW],
            "members": members,
            **kwargs,
        }
    )


def test_populated_user_object_is_a_member():
    group = group_from_backend([{"_id": "m1", "userId": {"_id": "u1"}}])

    assert membership.is_member("u1", group)
    assert not membership.is_member("m1", group)


def test_the_three_id_shapes_resolve_the_same_way():
    populated = Membership.model_validate({"_id": "m1", "userId": {"_id": "u1"}})
    raw = Membership.model_validate({"_id": "m2", "userId": "u1"})
    flat = Membership.model_validate({"_id": "u1", "firstName": "Omar"})

    assert membership.member_user_id(populated) == "u1"
    assert membership.member_user_id(raw) == "u1"
    assert membership.member_user_id(flat) == "u1"


def test_member_without_any_id():
    assert membership.member_user_id(Membership()) is None
    assert membership.member_user_id(Membership(user_id="")) is None


def test_inherits_group_permissions_without_override():
    group = group_from_backend([{"_id": "m1", "userId": "u1"}])

    permissions = membership.effective_permissions("u1", group)

    assert permissions == [Permission(resource="kyc:approval", actions={"view"})]

    # Copies, not the group's own objects.
    permissions[0].actions.add("approve")
    assert group.permissions[0].actions == {"view"}


def test_empty_override_inherits():
    group = group_from_backend(
        [{"_id": "m1", "userId": "u1", "memberPermissions": []}]
    )

    assert membership.effective_permissions("u1", group) == group.permissions


def test_override_replaces_group_permissions_entirely():
    group = group_from_backend(
        [
            {
                "_id": "m1",
                "userId": "u1",
                "memberPermissions": [
                    {"resource": "finance:reports", "actions": ["view"]}
                ],
            }
        ]
    )

    permissions = membership.effective_permissions("u1", group)

    assert [p.resource for p in permissions] == ["finance:reports"]


def test_non_member_gets_nothing():
    group = group_from_backend([{"_id": "m1", "userId": "u1"}])

    assert membership.effective_permissions("u2", group) == []
    assert membership.role_in("u2", group) is None


def test_memberships_across_the_tree():
    root = group_from_backend(
        [{"_id": "m1", "userId": "u1", "roleCategory": "team_lead"}], _id="root"
    )
    sub_group = group_from_backend(
        [{"_id": "m2", "userId": {"_id": "u1"}, "roleCategory": "team_member"}],
        _id="sub",
        parentGroupId="root",
    )
    other = group_from_backend([], _id="other")

    roots = hierarchy.build_hierarchy([root, sub_group, other])

    assert [g.id for g in membership.memberships_of("u1", roots)] == ["root", "sub"]
    assert [g.id for g in membership.team_lead_groups("u1", roots)] == ["root"]
    assert membership.role_in("u1", sub_group) == "team_member"


def test_display_prefers_populated_user():
    member = Membership.model_validate(
        {
            "_id": "m1",
            "userId": {"_id": "u1", "firstName": "Lina", "lastName": "Alotaibi"},
            "email": "lina@zaron.sa",
        }
    )

    display = membership.member_display(member)

    assert display.user_id == "u1"
    assert display.name == "Lina Alotaibi"
    assert display.email == "lina@zaron.sa"
    assert display.initials == "LA"


def test_display_falls_back_to_known_users():
    member = Membership.model_validate({"_id": "m1", "userId": "u1"})
    users = {
        "u1": AdminUserData(
            id="u1",
            first_name="Omar",
            last_name="Alqahtani",
            email="omar@zaron.sa",
            role="admin",
        )
    }

    assert membership.member_display(member, users).name == "Omar Alqahtani"


def test_display_of_deleted_user():
    member = Membership.model_validate({"_id": "m1", "userId": "gone"})

    display = membership.member_display(member)

    assert display.name == "Unknown User"
    assert display.email == "No email"
    assert display.initials == "UU"
