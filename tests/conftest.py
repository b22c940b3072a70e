"""
Core configuration
"""

import pytest
import pytest_asyncio
import structlog

from zaron.config.settings import Settings
from zaron.service.mock import MockBackend
from zaron.service.policy import Viewer
from zaron.toolkit.client import BackendClient, Session

SUPER_ADMIN_TOKEN = "super-admin-token"


@pytest.fixture(scope="session")
def logger():
    yield structlog.get_logger()


@pytest.fixture
def settings(tmp_path):
    yield Settings(
        backend_api_url="http://backend.test/",
        session_directory=tmp_path / "zaron",
        mock_token=SUPER_ADMIN_TOKEN,
    )


@pytest.fixture
def backend():
    yield MockBackend.seeded(SUPER_ADMIN_TOKEN)


@pytest.fixture
def user_ids(backend: MockBackend):
    """
    Seeded user ids by first name, staff and regular users alike.
    """
    users = {**backend.admins, **backend.regular_users}
    yield {u["firstName"]: u["_id"] for u in users.values()}


@pytest.fixture
def group_ids(backend: MockBackend):
    yield {g["displayName"]: g["_id"] for g in backend.groups.values()}


def make_client(backend: MockBackend, settings: Settings, token: str):
    return BackendClient(
        settings.backend_base_url,
        Session(access_token=token),
        transport=backend.transport(),
    )


@pytest_asyncio.fixture
async def client(backend, settings):
    async with make_client(backend, settings, SUPER_ADMIN_TOKEN) as client:
        yield client


@pytest_asyncio.fixture
async def admin_client(backend, settings):
    async with make_client(backend, settings, "admin-token") as client:
        yield client


@pytest.fixture
def super_admin(user_ids):
    yield Viewer(user_id=user_ids["Sara"], role="super_admin")


@pytest.fixture
def admin(user_ids):
    # Omar leads the KYC Team.
    yield Viewer(user_id=user_ids["Omar"], role="admin")


@pytest.fixture
def team_member(user_ids):
    yield Viewer(user_id=user_ids["Lina"], role="team_member")


@pytest_asyncio.fixture
async def member_client(backend, settings):
    async with make_client(backend, settings, "member-token") as client:
        yield client
