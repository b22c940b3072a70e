"""
What the signed-in staff member may see. Display only: the backend enforces
the same rules on every request.
"""

from collections.abc import Iterable

from zaron.core.models import MyPermissions
from zaron.core.permission import Permission, grants


class ViewerAccess:
    """
    A viewer's system role and effective permissions, as reported by the
    backend's `my-permissions` endpoint.
    """

    role: str | None
    permissions: list[Permission]

    def __init__(self, role: str | None, permissions: Iterable[Permission] = ()):
        self.role = role
        self.permissions = list(permissions)

    @classmethod
    def from_my_permissions(cls, content: MyPermissions) -> "ViewerAccess":
        return cls(role=content.role, permissions=content.effective_permissions)

    @property
    def is_super_admin(self) -> bool:
        return self.role == "super_admin"

    def has_permission(self, resource: str, action: str) -> bool:
        # Super admins are the only role not bound by group permissions.
        if self.is_super_admin:
            return True
        return grants(self.permissions, resource, action)

    def has_any_permission(self, checks: Iterable[tuple[str, str]]) -> bool:
        return any(self.has_permission(r, a) for r, a in checks)

    def has_all_permissions(self, checks: Iterable[tuple[str, str]]) -> bool:
        return all(self.has_permission(r, a) for r, a in checks)

    def can_access_administration(self) -> bool:
        return self.role is not None and self.role not in ("team_member", "user")

    def can_access_group_management(self) -> bool:
        return self.role in ("super_admin", "admin", "team_lead")

    def can_access_approvals(self) -> bool:
        return self.is_super_admin

    def can_access_admin_roles(self) -> bool:
        return self.role in ("super_admin", "admin")
