"""
Dependencies used by the API.
"""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from structlog import get_logger
from structlog.typing import FilteringBoundLogger

from zaron.config.settings import Settings
from zaron.service.policy import Viewer
from zaron.toolkit.client import BackendClient, Session


@lru_cache
def SETTINGS():
    return Settings()


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def logger():
    return get_logger()


def get_session(request: Request) -> Session:
    """
    The caller's bearer token, forwarded as-is to the backend.
    """
    scheme, _, token = request.headers.get("Authorization", "").partition(" ")

    if scheme != "Bearer" or not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="A bearer token is required",
        )

    return Session(access_token=token)


SettingsDependency = Annotated[Settings, Depends(get_settings)]
LoggerDependency = Annotated[FilteringBoundLogger, Depends(logger)]
SessionDependency = Annotated[Session, Depends(get_session)]


async def get_client(
    request: Request,
    session: SessionDependency,
    settings: SettingsDependency,
    log: LoggerDependency,
):
    async with BackendClient(
        settings.backend_base_url,
        session,
        timeout=settings.request_timeout,
        transport=request.app.state.backend_transport,
        log=log,
    ) as client:
        yield client


ClientDependency = Annotated[BackendClient, Depends(get_client)]


async def get_viewer(client: ClientDependency, log: LoggerDependency) -> Viewer:
    profile = await client.profile()
    await log.adebug("api.viewer", viewer_id=profile.id, role=profile.role)
    return Viewer(user_id=profile.id, role=profile.role)


ViewerDependency = Annotated[Viewer, Depends(get_viewer)]
