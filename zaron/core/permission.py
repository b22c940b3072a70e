"""
Permission grants and the catalog of resources, actions and departments.
"""

from pydantic import BaseModel, ConfigDict, field_serializer, field_validator
from pydantic.alias_generators import to_camel

ACTIONS = (
    "view",
    "create",
    "edit",
    "delete",
    "approve",
    "reject",
    "manage",
    "export",
    "verify",
    "archive",
)

DEPARTMENTS = {
    "kyc": "KYC",
    "finance": "Finance",
    "compliance": "Compliance",
    "operations": "Operations",
    "property-management": "Property Management",
    "user-management": "User Management",
    "analytics": "Analytics",
    "admin": "Admin",
    "other": "Other",
}

PERMISSION_RESOURCES = {
    "KYC": ["kyc", "kyc:verification", "kyc:approval", "kyc:documents"],
    "Finance": [
        "finance",
        "finance:reports",
        "finance:investments",
        "finance:payouts",
        "finance:audits",
    ],
    "Compliance": [
        "compliance",
        "compliance:monitoring",
        "compliance:reports",
        "compliance:approvals",
        "compliance:policies",
    ],
    "Operations": [
        "operations",
        "operations:properties",
        "operations:transactions",
        "operations:support",
        "operations:maintenance",
    ],
    "Properties": [
        "properties",
        "properties:create",
        "properties:edit",
        "properties:manage",
        "properties:documents",
    ],
    "Users": ["users", "users:create", "users:edit", "users:deactivate", "users:reports"],
    "Investments & Transactions": [
        "investments",
        "transactions",
        "transactions:manage",
        "transactions:approve",
        "transactions:dispute",
    ],
    "Documents": [
        "documents",
        "documents:upload",
        "documents:verify",
        "documents:archive",
    ],
    "Analytics": [
        "analytics",
        "analytics:view",
        "analytics:export",
        "analytics:generate",
    ],
    "System": [
        "notifications",
        "settings",
        "admin",
        "admin:users",
        "admin:roles",
        "admin:groups",
        "admin:security",
        "admin:logs",
    ],
}


class Permission(BaseModel):
    """
    A grant of a set of actions on a single resource, as stored by the
    backend. Read back as it is, even with actions outside the catalog.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    resource: str
    actions: set[str] = set()

    @field_serializer("actions")
    def serialize_actions(self, value: set[str]) -> list[str]:
        return sorted(value)

    def allows(self, action: str) -> bool:
        return action in self.actions


class PermissionGrant(Permission):
    """
    A permission submitted through the dashboard: a named resource and only
    actions from the catalog.
    """

    @field_validator("resource")
    @classmethod
    def check_resource(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Permission resource may not be empty")
        return value

    @field_validator("actions")
    @classmethod
    def check_actions(cls, value: set[str]) -> set[str]:
        unknown = value - set(ACTIONS)
        if unknown:
            raise ValueError(
                f"Unknown action(s) {sorted(unknown)}, must be one of {list(ACTIONS)}"
            )
        return value


def normalize_permissions(permissions: list[Permission]) -> list[Permission]:
    """
    De-duplicate by resource, keeping the first occurrence. The returned
    permissions are copies, so callers may edit them freely.
    """
    seen = set()
    result = []

    for permission in permissions:
        if permission.resource in seen:
            continue
        seen.add(permission.resource)
        result.append(permission.model_copy(deep=True))

    return result


def grants(permissions: list[Permission], resource: str, action: str) -> bool:
    """
    Check whether `permissions` contain `action` on `resource`.
    """
    return any(p.resource == resource and p.allows(action) for p in permissions)


def all_resources() -> list[str]:
    return [resource for group in PERMISSION_RESOURCES.values() for resource in group]
