"""
Approval of pending staff accounts.
"""

from typing import Literal

from fastapi import APIRouter

from zaron.core.user import AdminUserData
from zaron.service import approval as approval_service

from .dependencies import ClientDependency, LoggerDependency, ViewerDependency

approval_routes = APIRouter(tags=["Staff Approval"])


@approval_routes.get(
    "",
    summary="List pending accounts",
    description=(
        "Staff accounts awaiting approval. The `admins` tab holds every role "
        "except team leads and team members, which have their own tabs."
    ),
    responses={
        200: {"description": "Pending accounts."},
    },
)
async def list_pending(
    viewer: ViewerDependency,
    client: ClientDependency,
    log: LoggerDependency,
    tab: Literal["admins", "team_lead", "team_member"] | None = None,
) -> list[AdminUserData]:
    log = log.bind(viewer_id=viewer.user_id)
    return await approval_service.list_pending(client=client, log=log, tab=tab)


@approval_routes.post(
    "/{user_id}/approve",
    summary="Approve a pending account",
    description="Activate a pending account. Super admins only.",
    responses={
        200: {"description": "Account approved, fresh pending list returned."},
        403: {"description": "Only super admins can approve accounts."},
        404: {"description": "Account is not pending."},
    },
)
async def approve(
    user_id: str,
    viewer: ViewerDependency,
    client: ClientDependency,
    log: LoggerDependency,
) -> list[AdminUserData]:
    return await approval_service.approve(viewer, user_id, client, log)


@approval_routes.post(
    "/{user_id}/reject",
    summary="Reject a pending account",
    description=(
        "Reject a pending account. The account is deleted; the applicant has "
        "to register again. Super admins only."
    ),
    responses={
        200: {"description": "Account rejected, fresh pending list returned."},
        403: {"description": "Only super admins can reject accounts."},
        404: {"description": "Account is not pending."},
    },
)
async def reject(
    user_id: str,
    viewer: ViewerDependency,
    client: ClientDependency,
    log: LoggerDependency,
) -> list[AdminUserData]:
    return await approval_service.reject(viewer, user_id, client, log)
