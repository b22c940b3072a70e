"""
An in-memory stand-in for the backend API, used for testing and for
`zaron run dev`. It serves the admin endpoints the dashboard consumes
through an `httpx.MockTransport` and keeps just enough behaviour (approval
deletes rejected accounts, memberships disappear with their group) to make
the dashboard's flows observable.
"""

import copy
import json
import re
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

import httpx


def _new_id() -> str:
    return uuid4().hex[:24]


def _json(status_code: int, content: Any) -> httpx.Response:
    return httpx.Response(status_code=status_code, json=content)


def _ok(data: Any = None, message: str | None = None) -> httpx.Response:
    content = {"success": True, "data": data}
    if message is not None:
        content["message"] = message
    return _json(200, content)


def _fail(status_code: int, message: str) -> httpx.Response:
    return _json(status_code, {"success": False, "message": message})


class MockBackend:
    """
    State is plain camelCase dictionaries, shaped like the real backend's
    JSON. Tokens map to staff user ids.
    """

    def __init__(self):
        self.groups: dict[str, dict[str, Any]] = {}
        self.admins: dict[str, dict[str, Any]] = {}
        self.regular_users: dict[str, dict[str, Any]] = {}
        self.tokens: dict[str, str] = {}
        self.requests: list[httpx.Request] = []
        self.unavailable = False
        self._failures: list[tuple[int, str, str | None]] = []

        routes: list[tuple[str, str, Callable]] = [
            ("GET", r"/api/auth/profile", self.profile),
            ("GET", r"/api/admin/my-permissions", self.my_permissions),
            ("GET", r"/api/admin/groups", self.list_groups),
            ("POST", r"/api/admin/groups", self.create_group),
            ("PATCH", r"/api/admin/groups/(?P<group_id>[^/]+)", self.update_group),
            ("PUT", r"/api/admin/groups/(?P<group_id>[^/]+)", self.update_group),
            ("DELETE", r"/api/admin/groups/(?P<group_id>[^/]+)", self.delete_group),
            (
                "POST",
                r"/api/admin/groups/(?P<group_id>[^/]+)/add-member",
                self.add_member,
            ),
            (
                "DELETE",
                r"/api/admin/groups/(?P<group_id>[^/]+)/remove-member/(?P<user_id>[^/]+)",
                self.remove_member,
            ),
            (
                "PUT",
                r"/api/admin/groups/(?P<group_id>[^/]+)/members/(?P<user_id>[^/]+)/permissions",
                self.member_permissions,
            ),
            ("GET", r"/api/admin/admin-users", self.list_admins),
            ("POST", r"/api/admin/admin-users", self.create_admin),
            ("GET", r"/api/admin/admin-users/pending/list", self.list_pending),
            (
                "POST",
                r"/api/admin/admin-users/(?P<user_id>[^/]+)/verify",
                self.verify_admin,
            ),
            ("POST", r"/api/admin/promote-user", self.promote_user),
            ("GET", r"/api/admin/eligible-users", self.eligible_users),
        ]
        self.routes = [(m, re.compile(f"^{p}$"), h) for m, p, h in routes]

    # Setup

    def add_admin(
        self,
        first_name: str,
        last_name: str,
        email: str,
        role: str,
        status: str = "active",
        token: str | None = None,
        user_id: str | None = None,
    ) -> str:
        user_id = user_id or _new_id()
        self.admins[user_id] = {
            "_id": user_id,
            "firstName": first_name,
            "lastName": last_name,
            "email": email,
            "phone": None,
            "role": role,
            "status": status,
            "createdAt": datetime.now(tz=timezone.utc).isoformat(),
        }
        if token is not None:
            self.tokens[token] = user_id
        return user_id

    def add_regular_user(self, first_name: str, last_name: str, email: str) -> str:
        user_id = _new_id()
        self.regular_users[user_id] = {
            "_id": user_id,
            "firstName": first_name,
            "lastName": last_name,
            "email": email,
            "kycStatus": "approved",
            "status": "active",
            "emailVerified": True,
        }
        return user_id

    def add_group(
        self,
        display_name: str,
        department: str | None = None,
        permissions: list[dict[str, Any]] | None = None,
        parent_group_id: str | None = None,
        group_id: str | None = None,
    ) -> str:
        group_id = group_id or _new_id()
        self.groups[group_id] = {
            "_id": group_id,
            "name": display_name.lower().replace(" ", "_"),
            "displayName": display_name,
            "description": None,
            "department": department,
            "permissions": copy.deepcopy(permissions or []),
            "parentGroupId": parent_group_id,
            "members": [],
            "isActive": True,
        }
        return group_id

    def add_membership(
        self,
        group_id: str,
        user_id: str,
        role_category: str = "team_member",
        member_permissions: list[dict[str, Any]] | None = None,
    ) -> None:
        self.groups[group_id]["members"].append(
            {
                "_id": _new_id(),
                "userId": user_id,
                "roleCategory": role_category,
                "memberPermissions": copy.deepcopy(member_permissions or []),
            }
        )

    def fail_next(
        self, status_code: int, message: str, path: str | None = None
    ) -> None:
        """
        Answer the next request (to a path ending in `path`, if given) with
        this error instead of handling it.
        """
        self._failures.append((status_code, message, path))

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    @classmethod
    def seeded(cls, super_admin_token: str = "super-admin-token") -> "MockBackend":
        """
        A small organisation: one super admin, a KYC department with a
        sub-group, and one account waiting for approval.
        """
        backend = cls()
        backend.add_admin(
            "Sara", "Alharbi", "sara@zaron.sa", "super_admin", token=super_admin_token
        )
        lead = backend.add_admin(
            "Omar", "Alqahtani", "omar@zaron.sa", "admin", token="admin-token"
        )
        officer = backend.add_admin(
            "Lina", "Alotaibi", "lina@zaron.sa", "team_member", token="member-token"
        )
        backend.add_admin(
            "Yousef",
            "Aldosari",
            "yousef@zaron.sa",
            "kyc_officer",
            status="pending_verification",
        )
        backend.add_regular_user("Noura", "Alshehri", "noura@example.com")

        kyc = backend.add_group(
            "KYC Team",
            department="kyc",
            permissions=[{"resource": "kyc:approval", "actions": ["view", "approve"]}],
        )
        reviewers = backend.add_group(
            "KYC Reviewers",
            department="kyc",
            permissions=[{"resource": "kyc:documents", "actions": ["view"]}],
            parent_group_id=kyc,
        )
        backend.add_group(
            "Finance",
            department="finance",
            permissions=[{"resource": "finance:reports", "actions": ["view", "export"]}],
        )
        backend.add_membership(kyc, lead, "team_lead")
        backend.add_membership(reviewers, officer, "team_member")

        return backend

    # Dispatch

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        if self.unavailable:
            raise httpx.ConnectError("Backend unavailable", request=request)

        for failure in self._failures:
            status_code, message, path = failure
            if path is None or request.url.path.endswith(path):
                self._failures.remove(failure)
                return _fail(status_code, message)

        viewer = self._viewer(request)
        if viewer is None:
            return _fail(401, "Not authorized, token failed")

        for method, pattern, handler in self.routes:
            if method != request.method:
                continue
            match = pattern.match(request.url.path)
            if match is None:
                continue
            body = json.loads(request.content) if request.content else {}
            return handler(viewer=viewer, body=body, **match.groupdict())

        return _fail(404, f"Route {request.method} {request.url.path} not found")

    def _viewer(self, request: httpx.Request) -> dict[str, Any] | None:
        header = request.headers.get("Authorization", "")
        scheme, _, token = header.partition(" ")
        if scheme != "Bearer":
            return None
        user_id = self.tokens.get(token)
        return self.admins.get(user_id) if user_id is not None else None

    def _populated(self, group: dict[str, Any]) -> dict[str, Any]:
        group = copy.deepcopy(group)
        for member in group["members"]:
            user = self.admins.get(member["userId"])
            if user is not None:
                member["userId"] = {
                    k: user[k] for k in ("_id", "firstName", "lastName", "email")
                }
        group["memberCount"] = len(group["members"])
        return group

    # Handlers

    def profile(self, viewer, body):
        return _ok({"user": viewer})

    def my_permissions(self, viewer, body):
        merged: dict[str, set[str]] = {}
        for group in self.groups.values():
            for member in group["members"]:
                if member["userId"] != viewer["_id"]:
                    continue
                source = member["memberPermissions"] or group["permissions"]
                for permission in source:
                    merged.setdefault(permission["resource"], set()).update(
                        permission["actions"]
                    )

        return _ok(
            {
                "userId": viewer["_id"],
                "userName": f"{viewer['firstName']} {viewer['lastName']}",
                "email": viewer["email"],
                "role": viewer["role"],
                "effectivePermissions": [
                    {"resource": r, "actions": sorted(a)} for r, a in merged.items()
                ],
            }
        )

    def list_groups(self, viewer, body):
        return _ok([self._populated(g) for g in self.groups.values()])

    def create_group(self, viewer, body):
        if viewer["role"] not in ("super_admin", "admin"):
            return _fail(403, "Not authorized to create groups")

        if any(g["name"] == body.get("name") for g in self.groups.values()):
            return _fail(400, f"Group {body.get('name')} already exists")

        parent = body.get("parentGroupId")
        if parent is not None and parent not in self.groups:
            return _fail(404, "Parent group not found")

        group_id = self.add_group(
            body["displayName"],
            department=body.get("department"),
            permissions=body.get("permissions"),
            parent_group_id=parent,
        )
        self.groups[group_id]["name"] = body["name"]
        self.groups[group_id]["description"] = body.get("description")

        if body.get("teamLeadId") in self.admins:
            self.add_membership(group_id, body["teamLeadId"], "team_lead")

        return _ok(self._populated(self.groups[group_id]), "Group created")

    def update_group(self, viewer, body, group_id):
        if group_id not in self.groups:
            return _fail(404, "Group not found")
        permissions = copy.deepcopy(body.get("permissions", []))
        self.groups[group_id]["permissions"] = permissions
        return _ok(self._populated(self.groups[group_id]))

    def delete_group(self, viewer, body, group_id):
        if self.groups.pop(group_id, None) is None:
            return _fail(404, "Group not found")
        return _ok(message="Group deleted")

    def add_member(self, viewer, body, group_id):
        group = self.groups.get(group_id)
        if group is None:
            return _fail(404, "Group not found")

        user_id = body.get("userId")
        if user_id not in self.admins:
            return _fail(404, "User not found")

        if any(m["userId"] == user_id for m in group["members"]):
            return _fail(400, "User is already a member of this group")

        self.add_membership(
            group_id,
            user_id,
            body.get("roleCategory") or "team_member",
            body.get("memberPermissions"),
        )
        return _ok(self._populated(group), "Member added")

    def remove_member(self, viewer, body, group_id, user_id):
        group = self.groups.get(group_id)
        if group is None:
            return _fail(404, "Group not found")

        before = len(group["members"])
        group["members"] = [m for m in group["members"] if m["userId"] != user_id]
        if len(group["members"]) == before:
            return _fail(404, "User is not a member of this group")

        return _ok(message="Member removed")

    def member_permissions(self, viewer, body, group_id, user_id):
        group = self.groups.get(group_id)
        if group is None:
            return _fail(404, "Group not found")

        for member in group["members"]:
            if member["userId"] == user_id:
                member["memberPermissions"] = copy.deepcopy(
                    body.get("memberPermissions", [])
                )
                return _ok(message="Member permissions updated")

        return _fail(404, "User is not a member of this group")

    def list_admins(self, viewer, body):
        return _ok({"admins": list(copy.deepcopy(self.admins).values())})

    def create_admin(self, viewer, body):
        if any(a["email"] == body.get("email") for a in self.admins.values()):
            return _fail(409, "An account with this email already exists")

        user_id = self.add_admin(
            body["firstName"],
            body["lastName"],
            body["email"],
            body["role"],
            status="pending_verification",
        )
        self.admins[user_id]["phone"] = body.get("phone")
        self.admins[user_id]["position"] = body.get("position")

        role = body["role"]
        role_category = role if role in ("team_lead", "team_member") else None
        for group_id in body.get("groupIds", []):
            if group_id in self.groups:
                self.add_membership(group_id, user_id, role_category or "team_member")

        return _json(201, {"success": True, "data": {"admin": self.admins[user_id]}})

    def list_pending(self, viewer, body):
        pending = [
            a for a in self.admins.values() if a["status"] == "pending_verification"
        ]
        return _ok({"pendingAdmins": copy.deepcopy(pending)})

    def verify_admin(self, viewer, body, user_id):
        if viewer["role"] != "super_admin":
            return _fail(403, "Only super admins can verify admin accounts")

        admin = self.admins.get(user_id)
        if admin is None or admin["status"] != "pending_verification":
            return _fail(404, "Pending admin not found")

        if body.get("approved"):
            admin["status"] = "active"
            return _ok(message="Admin approved")

        del self.admins[user_id]
        for group in self.groups.values():
            group["members"] = [m for m in group["members"] if m["userId"] != user_id]
        return _ok(message="Admin rejected and removed")

    def promote_user(self, viewer, body):
        user = self.regular_users.pop(body.get("userId"), None)
        if user is None:
            return _fail(404, "User not found")

        self.add_admin(
            user["firstName"],
            user["lastName"],
            user["email"],
            body["role"],
            user_id=user["_id"],
        )
        return _ok(message="User promoted")

    def eligible_users(self, viewer, body):
        return _ok({"users": list(copy.deepcopy(self.regular_users).values())})
