"""
Approval of newly registered staff accounts.

An account starts in `pending_verification`. A super admin either approves
it (`active`, the account may log in) or rejects it, which deletes the
account for good. There is no way back to pending from either outcome.
"""

from typing import Literal

from structlog.typing import FilteringBoundLogger

from zaron.core.user import TEAM_ROLES, AdminUserData
from zaron.toolkit.client import BackendClient

from .policy import PolicyViolation, Viewer

ApprovalState = Literal["pending_verification", "active", "deleted"]

PENDING_TABS = ("admins", "team_lead", "team_member")


class InvalidTransition(Exception):
    pass


class NotPendingError(Exception):
    pass


def next_state(state: str, approved: bool) -> ApprovalState:
    """
    The transition function. Only pending accounts can move.

    Raises
    ------
    InvalidTransition
        From any state other than `pending_verification`.
    """
    if state != "pending_verification":
        raise InvalidTransition(f"No approval transition from state '{state}'")

    return "active" if approved else "deleted"


def filter_tab(users: list[AdminUserData], tab: str) -> list[AdminUserData]:
    """
    `admins` holds every non-team role; the team tabs hold their own role.
    """
    if tab in TEAM_ROLES:
        return [u for u in users if u.role == tab]
    return [u for u in users if u.role not in TEAM_ROLES]


async def list_pending(
    client: BackendClient, log: FilteringBoundLogger, tab: str | None = None
) -> list[AdminUserData]:
    users = await client.list_pending_admins()

    if tab is not None:
        users = filter_tab(users, tab)

    await log.adebug("approval.pending_listed", tab=tab, number_of_users=len(users))
    return users


async def _decide(
    viewer: Viewer,
    user_id: str,
    approved: bool,
    client: BackendClient,
    log: FilteringBoundLogger,
) -> list[AdminUserData]:
    log = log.bind(viewer_id=viewer.user_id, user_id=user_id, approved=approved)

    if not viewer.is_super_admin:
        await log.awarning("approval.access_denied")
        raise PolicyViolation(
            "Missing permission: approve staff accounts (super admin)"
        )

    pending = await client.list_pending_admins()
    user = next((u for u in pending if u.id == user_id), None)

    if user is None:
        await log.ainfo("approval.not_pending")
        raise NotPendingError(f"User {user_id} is not awaiting approval")

    state = next_state(user.status or "pending_verification", approved)

    # Errors propagate untouched: nothing has changed locally.
    await client.verify_admin(admin_id=user_id, approved=approved)

    event = "approval.approved" if approved else "approval.rejected"
    await log.ainfo(event, state=state)

    return await client.list_pending_admins()


async def approve(
    viewer: Viewer, user_id: str, client: BackendClient, log: FilteringBoundLogger
) -> list[AdminUserData]:
    """
    Activate a pending account.

    Returns
    -------
    list[AdminUserData]
        The re-fetched pending list.

    Raises
    ------
    PolicyViolation
        If the viewer is not a super admin.
    NotPendingError
        If the user is not in the pending list.
    zaron.toolkit.client.BackendError
        If the backend refuses.
    """
    return await _decide(viewer, user_id, True, client, log)


async def reject(
    viewer: Viewer, user_id: str, client: BackendClient, log: FilteringBoundLogger
) -> list[AdminUserData]:
    """
    Reject a pending account. The backend deletes it; the applicant has to
    register again from scratch.

    Same returns and errors as `approve`.
    """
    return await _decide(viewer, user_id, False, client, log)
