"""
An API client for the Zaron backend, wraps around httpx.
"""

import json
from pathlib import Path
from typing import Any

import httpx
from pydantic import BaseModel
from structlog import get_logger
from structlog.typing import FilteringBoundLogger

from zaron.core.group import GroupData
from zaron.core.models import (
    AddMemberRequest,
    AdminCreationRequest,
    AdminUserList,
    BackendEnvelope,
    EligibleUserList,
    GroupCreationRequest,
    GroupPermissionsUpdate,
    MemberPermissionsUpdate,
    MyPermissions,
    PromoteUserRequest,
    VerifyAdminRequest,
)
from zaron.core.permission import Permission
from zaron.core.user import AdminUserData, RegularUserData

CANONICAL_TOKEN_KEY = "access_token"
LEGACY_TOKEN_KEYS = ("zaron_token", "authToken", "token")


class BackendError(Exception):
    """
    The backend answered, but rejected the request. `message` is the
    backend's own `message` field.
    """

    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class BackendUnavailable(Exception):
    """
    The request never produced a response (connection, timeout, ...).
    """


class SessionNotFound(Exception):
    pass


class Session(BaseModel):
    """
    The one object that carries credentials to whatever issues requests.
    """

    access_token: str


class SessionStore:
    """
    Stores a `Session` on disk under the canonical key. Files written by
    older tooling under one of the legacy key names are migrated on read.
    """

    filename: Path

    def __init__(self, filename: Path):
        self.filename = filename

    def serialize(self, session: Session) -> Path:
        """
        Serializes the session to disk, readable only by the owner.
        """
        self.filename.parent.mkdir(parents=True, exist_ok=True)

        with open(self.filename, "w") as handle:
            handle.write(session.model_dump_json())

        self.filename.chmod(0o600)

        return self.filename

    def deserialize(self) -> Session:
        """
        Reads the session, rewriting the file if it used a legacy key.

        Raises
        ------
        SessionNotFound
            If there is no file, or it holds no token under any known key.
        """
        try:
            with open(self.filename, "r") as handle:
                content = json.load(handle)
        except FileNotFoundError:
            raise SessionNotFound(f"No session stored at {self.filename}")

        session = migrate_session(content)

        if set(content) != {CANONICAL_TOKEN_KEY}:
            self.serialize(session)

        return session


def migrate_session(storage: dict[str, Any]) -> Session:
    """
    Build a `Session` from a key/value store that may only hold one of the
    legacy token keys. The canonical key wins when several are present.
    """
    for key in (CANONICAL_TOKEN_KEY, *LEGACY_TOKEN_KEYS):
        token = storage.get(key)
        if token:
            return Session(access_token=token)

    raise SessionNotFound("No token found under any known key")


class BearerAuth(httpx.Auth):
    """
    Attaches the session's token to every request.
    """

    def __init__(self, session: Session):
        self.session = session

    def auth_flow(self, request: httpx.Request):
        request.headers["Authorization"] = f"Bearer {self.session.access_token}"
        yield request


def _error_message(response: httpx.Response) -> str:
    try:
        content = response.json()
    except ValueError:
        return "API request failed"

    if isinstance(content, dict):
        return content.get("message") or content.get("error") or "API request failed"

    return "API request failed"


class BackendClient:
    """
    Async client for the admin endpoints of the backend. Use as an async
    context manager, or call `aclose` when done.

    No request is retried and nothing is cached: every call goes to the
    backend, which is the only source of truth.
    """

    def __init__(
        self,
        base_url: str,
        session: Session,
        *,
        timeout: float = 20.0,
        transport: httpx.AsyncBaseTransport | None = None,
        log: FilteringBoundLogger | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.session = session
        self.log = log if log is not None else get_logger()
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            auth=BearerAuth(session),
            headers={"Content-Type": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "BackendClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def request(
        self, method: str, url: str, *, json: dict[str, Any] | None = None
    ) -> BackendEnvelope:
        """
        Issue one request and unwrap the `{success, message, data}` envelope.

        Raises
        ------
        BackendError
            On a non-2xx response, or a 2xx response with `success: false`.
        BackendUnavailable
            If no response was received.
        """
        log = self.log.bind(method=method, url=url)

        try:
            response = await self._client.request(method=method, url=url, json=json)
        except httpx.TransportError as e:
            await log.awarning("backend.unavailable", error=str(e))
            raise BackendUnavailable(f"Request to {url} failed: {e}") from e

        if not response.is_success:
            message = _error_message(response)
            await log.ainfo(
                "backend.rejected", status_code=response.status_code, message=message
            )
            raise BackendError(message=message, status_code=response.status_code)

        content = response.json()

        # One older endpoint answers with a bare list.
        if isinstance(content, list):
            return BackendEnvelope(success=True, data=content)

        envelope = BackendEnvelope.model_validate(content)

        if not envelope.success:
            message = envelope.message or "Request was not successful"
            await log.ainfo("backend.unsuccessful", message=message)
            raise BackendError(message=message, status_code=response.status_code)

        await log.adebug("backend.ok", status_code=response.status_code)
        return envelope

    # Groups

    async def list_groups(self) -> list[GroupData]:
        envelope = await self.request("GET", "/api/admin/groups")
        return [GroupData.model_validate(x) for x in envelope.data or []]

    async def create_group(self, content: GroupCreationRequest) -> GroupData | None:
        envelope = await self.request(
            "POST", "/api/admin/groups", json=content.to_body()
        )
        return GroupData.model_validate(envelope.data) if envelope.data else None

    async def update_group_permissions(
        self, group_id: str, permissions: list[Permission]
    ) -> None:
        await self.request(
            "PATCH",
            f"/api/admin/groups/{group_id}",
            json=GroupPermissionsUpdate(permissions=permissions).to_body(),
        )

    async def delete_group(self, group_id: str) -> None:
        await self.request("DELETE", f"/api/admin/groups/{group_id}")

    async def add_member(self, group_id: str, content: AddMemberRequest) -> None:
        await self.request(
            "POST", f"/api/admin/groups/{group_id}/add-member", json=content.to_body()
        )

    async def remove_member(self, group_id: str, user_id: str) -> None:
        await self.request(
            "DELETE", f"/api/admin/groups/{group_id}/remove-member/{user_id}"
        )

    async def update_member_permissions(
        self, group_id: str, user_id: str, permissions: list[Permission]
    ) -> None:
        await self.request(
            "PUT",
            f"/api/admin/groups/{group_id}/members/{user_id}/permissions",
            json=MemberPermissionsUpdate(member_permissions=permissions).to_body(),
        )

    # Staff accounts

    async def list_admin_users(self) -> list[AdminUserData]:
        envelope = await self.request("GET", "/api/admin/admin-users")
        return AdminUserList.model_validate(envelope.data or {}).admins

    async def create_admin_user(self, content: AdminCreationRequest) -> None:
        await self.request("POST", "/api/admin/admin-users", json=content.to_body())

    async def list_pending_admins(self) -> list[AdminUserData]:
        envelope = await self.request("GET", "/api/admin/admin-users/pending/list")
        return [AdminUserData.model_validate(x) for x in _pending_records(envelope)]

    async def verify_admin(self, admin_id: str, approved: bool) -> None:
        await self.request(
            "POST",
            f"/api/admin/admin-users/{admin_id}/verify",
            json=VerifyAdminRequest(admin_id=admin_id, approved=approved).to_body(),
        )

    async def promote_user(self, content: PromoteUserRequest) -> None:
        await self.request("POST", "/api/admin/promote-user", json=content.to_body())

    async def list_eligible_users(self) -> list[RegularUserData]:
        envelope = await self.request("GET", "/api/admin/eligible-users")
        return EligibleUserList.model_validate(envelope.data or {}).users

    async def my_permissions(self) -> MyPermissions:
        envelope = await self.request("GET", "/api/admin/my-permissions")
        return MyPermissions.model_validate(envelope.data)

    async def profile(self) -> AdminUserData:
        envelope = await self.request("GET", "/api/auth/profile")
        data = envelope.data or {}
        if isinstance(data, dict) and "user" in data:
            data = data["user"]
        return AdminUserData.model_validate(data)


def _pending_records(envelope: BackendEnvelope) -> list[dict[str, Any]]:
    """
    The pending list has been served in several shapes over time.
    """
    data = envelope.data

    if isinstance(data, list):
        return data

    if isinstance(data, dict):
        for key in ("pendingAdmins", "pending", "users"):
            if isinstance(data.get(key), list):
                return data[key]

    extra = envelope.model_extra or {}
    for key in ("pending", "users"):
        if isinstance(extra.get(key), list):
            return extra[key]

    return []
