"""
Tests the dashboard API routes end to end, against the in-memory backend.
"""

import pytest
from fastapi.testclient import TestClient

from zaron.api.app import create_app

SUPER_ADMIN = {"Authorization": "Bearer super-admin-token"}
ADMIN = {"Authorization": "Bearer admin-token"}
MEMBER = {"Authorization": "Bearer member-token"}


@pytest.fixture
def api(settings, backend):
    app = create_app(settings=settings, transport=backend.transport())

    with TestClient(app) as client:
        yield client


def test_token_is_required(api):
    response = api.get("/admin/groups")

    assert response.status_code == 401
    assert response.json() == {
        "success": False,
        "message": "A bearer token is required",
    }

    response = api.get("/admin/groups", headers={"Authorization": "Bearer stale"})

    assert response.status_code == 401


def test_list_groups(api, group_ids):
    response = api.get("/admin/groups", headers=SUPER_ADMIN)

    assert response.status_code == 200
    content = response.json()
    assert [g["displayName"] for g in content["groups"]] == ["KYC Team", "Finance"]
    sub_group = content["groups"][0]["subGroups"][0]
    assert sub_group["parentGroupId"] == group_ids["KYC Team"]
    assert "super_admin" not in [u["role"] for u in content["users"]]


def test_groups_with_unknown_values_are_listed(api, backend):
    backend.add_group(
        "Marketing",
        department="marketing",
        permissions=[{"resource": "marketing:campaigns", "actions": ["read"]}],
    )

    response = api.get("/admin/groups", headers=SUPER_ADMIN)

    assert response.status_code == 200
    marketing = next(
        g for g in response.json()["groups"] if g["displayName"] == "Marketing"
    )
    assert marketing["department"] == "marketing"
    assert marketing["permissions"] == [
        {"resource": "marketing:campaigns", "actions": ["read"]}
    ]


def test_filter_groups(api):
    response = api.get(
        "/admin/groups", params={"department": "finance"}, headers=SUPER_ADMIN
    )

    assert [g["displayName"] for g in response.json()["groups"]] == ["Finance"]

    response = api.get("/admin/groups", params={"search": "kyc"}, headers=SUPER_ADMIN)

    assert [g["displayName"] for g in response.json()["groups"]] == ["KYC Team"]


def test_my_groups(api, group_ids):
    response = api.get("/admin/groups/mine", headers=MEMBER)

    assert response.status_code == 200
    (mine,) = response.json()
    assert mine["group"]["id"] == group_ids["KYC Reviewers"]
    assert mine["roleCategory"] == "team_member"
    assert mine["effectivePermissions"] == [
        {"resource": "kyc:documents", "actions": ["view"]}
    ]


def test_create_and_delete_group(api):
    response = api.post(
        "/admin/groups",
        json={
            "displayName": "Compliance Desk",
            "department": "compliance",
            "permissions": [
                {"resource": "compliance:aml", "actions": ["view", "edit"]}
            ],
        },
        headers=ADMIN,
    )

    assert response.status_code == 200
    created = next(
        g for g in response.json()["groups"] if g["displayName"] == "Compliance Desk"
    )
    assert created["name"] == "compliance_desk"

    response = api.delete(f"/admin/groups/{created['id']}", headers=ADMIN)

    assert response.status_code == 200
    assert created["id"] not in [g["id"] for g in response.json()["groups"]]


def test_policy_violation_is_forbidden(api, backend):
    response = api.post(
        "/admin/groups", json={"displayName": "Side Project"}, headers=MEMBER
    )

    assert response.status_code == 403
    assert response.json()["success"] is False
    assert response.json()["message"].startswith("Missing permission")
    assert not [r for r in backend.requests if r.method == "POST"]


def test_unknown_action_is_a_bad_request(api):
    response = api.post(
        "/admin/groups",
        json={
            "displayName": "Broken",
            "permissions": [{"resource": "kyc:approval", "actions": ["fly"]}],
        },
        headers=SUPER_ADMIN,
    )

    assert response.status_code == 400
    assert response.json()["success"] is False


def test_admin_cannot_pick_a_team_lead(api, backend, user_ids):
    response = api.post(
        "/admin/groups",
        json={"displayName": "Ops Desk", "teamLeadId": user_ids["Omar"]},
        headers=ADMIN,
    )

    assert response.status_code == 403
    assert "manage team leads" in response.json()["message"]
    assert not [r for r in backend.requests if r.method == "POST"]


def test_unknown_action_in_an_update_is_a_bad_request(api, group_ids, backend):
    response = api.patch(
        f"/admin/groups/{group_ids['Finance']}",
        json={"permissions": [{"resource": "finance:reports", "actions": ["read"]}]},
        headers=SUPER_ADMIN,
    )

    assert response.status_code == 400
    assert not [r for r in backend.requests if r.method == "PATCH"]


def test_sub_group_errors(api, group_ids):
    response = api.post(
        f"/admin/groups/{group_ids['KYC Reviewers']}/sub-groups",
        json={"displayName": "Too Deep"},
        headers=SUPER_ADMIN,
    )
    assert response.status_code == 400

    response = api.post(
        "/admin/groups/missing/sub-groups",
        json={"displayName": "Orphan"},
        headers=SUPER_ADMIN,
    )
    assert response.status_code == 404


def test_member_routes(api, group_ids, user_ids):
    finance = group_ids["Finance"]
    lina = user_ids["Lina"]

    response = api.post(
        f"/admin/groups/{finance}/members",
        json={"userId": lina, "roleCategory": "team_member"},
        headers=SUPER_ADMIN,
    )
    assert response.status_code == 200

    response = api.put(
        f"/admin/groups/{finance}/members/{lina}/permissions",
        json={
            "memberPermissions": [{"resource": "finance:reports", "actions": ["view"]}]
        },
        headers=SUPER_ADMIN,
    )
    assert response.status_code == 200

    response = api.delete(
        f"/admin/groups/{finance}/members/{lina}", headers=SUPER_ADMIN
    )
    assert response.status_code == 200

    response = api.delete(
        f"/admin/groups/{finance}/members/{lina}", headers=SUPER_ADMIN
    )
    assert response.status_code == 404


def test_ineligible_member_is_a_bad_request(api, group_ids, user_ids):
    response = api.post(
        f"/admin/groups/{group_ids['Finance']}/members",
        json={"userId": user_ids["Omar"], "roleCategory": "team_member"},
        headers=SUPER_ADMIN,
    )

    assert response.status_code == 400
    assert response.json() == {
        "success": False,
        "message": f"User {user_ids['Omar']} cannot be added as team member",
    }


def test_backend_errors_keep_their_status(api, backend):
    backend.fail_next(409, "Group is locked", path="/api/admin/groups")

    response = api.get("/admin/groups", headers=SUPER_ADMIN)

    assert response.status_code == 409
    assert response.json() == {"success": False, "message": "Group is locked"}


def test_unavailable_backend(api, backend):
    backend.unavailable = True

    response = api.get("/admin/groups", headers=SUPER_ADMIN)

    assert response.status_code == 502
    assert response.json()["success"] is False


def test_admin_listing(api):
    response = api.get("/admin/admins", params={"role": "admin"}, headers=ADMIN)

    assert response.status_code == 200
    content = response.json()
    assert [a["firstName"] for a in content["admins"]] == ["Omar"]
    assert content["roleCounts"]["super_admin"] == 1


def test_create_team_lead_without_department(api, backend):
    response = api.post(
        "/admin/admins",
        json={
            "firstName": "Huda",
            "lastName": "Alzahrani",
            "email": "huda@zaron.sa",
            "password": "Str0ng!pass",
            "role": "team_lead",
            "groupIds": [],
        },
        headers=SUPER_ADMIN,
    )

    assert response.status_code == 400
    assert response.json()["message"] == "Please assign to at least one department"
    assert not [
        r
        for r in backend.requests
        if r.method == "POST" and r.url.path == "/api/admin/admin-users"
    ]


def test_promote_with_bad_role(api, user_ids):
    response = api.post(
        "/admin/admins/promote",
        json={"userId": user_ids["Noura"], "role": ""},
        headers=SUPER_ADMIN,
    )

    assert response.status_code == 400
    assert response.json()["message"] == "Please select a valid role"


def test_eligible_users(api, user_ids):
    response = api.get("/admin/admins/eligible-users", headers=ADMIN)

    assert [u["id"] for u in response.json()] == [user_ids["Noura"]]


def test_my_access(api):
    content = api.get("/admin/admins/me", headers=MEMBER).json()

    assert content["role"] == "team_member"
    assert content["administration"] is False
    assert content["effectivePermissions"] == [
        {"resource": "kyc:documents", "actions": ["view"]}
    ]

    content = api.get("/admin/admins/me", headers=SUPER_ADMIN).json()

    assert content["approvals"] is True
    assert content["groupManagement"] is True


def test_approval_routes(api, user_ids):
    yousef = user_ids["Yousef"]

    response = api.get(
        "/admin/approvals", params={"tab": "admins"}, headers=SUPER_ADMIN
    )
    assert [u["id"] for u in response.json()] == [yousef]

    response = api.post(f"/admin/approvals/{yousef}/approve", headers=ADMIN)
    assert response.status_code == 403

    response = api.post(f"/admin/approvals/{yousef}/reject", headers=SUPER_ADMIN)
    assert response.status_code == 200
    assert response.json() == []

    response = api.post(f"/admin/approvals/{yousef}/approve", headers=SUPER_ADMIN)
    assert response.status_code == 404
