"""
FastAPI app
"""

from importlib.metadata import version

import httpx
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from zaron.config.settings import Settings
from zaron.service.approval import InvalidTransition, NotPendingError
from zaron.service.groups import GroupNotFound, MemberNotFound
from zaron.service.hierarchy import HierarchyDepthError, ParentGroupNotFound
from zaron.service.mock import MockBackend
from zaron.service.policy import (
    DepartmentSelectionError,
    IneligibleMember,
    PolicyViolation,
    RoleValidationError,
)
from zaron.toolkit.client import BackendError, BackendUnavailable

from .admins import admin_routes
from .approvals import approval_routes
from .dependencies import SETTINGS, logger
from .groups import group_app

STATUS_CODES: dict[type[Exception], int] = {
    RoleValidationError: status.HTTP_400_BAD_REQUEST,
    DepartmentSelectionError: status.HTTP_400_BAD_REQUEST,
    HierarchyDepthError: status.HTTP_400_BAD_REQUEST,
    IneligibleMember: status.HTTP_400_BAD_REQUEST,
    PolicyViolation: status.HTTP_403_FORBIDDEN,
    ParentGroupNotFound: status.HTTP_404_NOT_FOUND,
    GroupNotFound: status.HTTP_404_NOT_FOUND,
    MemberNotFound: status.HTTP_404_NOT_FOUND,
    NotPendingError: status.HTTP_404_NOT_FOUND,
    InvalidTransition: status.HTTP_409_CONFLICT,
}


def failure(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code, content={"success": False, "message": message}
    )


async def domain_error_handler(request: Request, exc: Exception) -> JSONResponse:
    return failure(STATUS_CODES[type(exc)], str(exc))


async def backend_error_handler(request: Request, exc: BackendError) -> JSONResponse:
    return failure(exc.status_code, exc.message)


async def backend_unavailable_handler(
    request: Request, exc: BackendUnavailable
) -> JSONResponse:
    await logger().awarning("api.backend_unavailable", error=str(exc))
    return failure(
        status.HTTP_502_BAD_GATEWAY, "Unable to reach the backend, please try again"
    )


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    return failure(exc.status_code, str(exc.detail))


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    message = "; ".join(
        f"{'.'.join(str(x) for x in error['loc'][1:])}: {error['msg']}"
        for error in exc.errors()
    )
    return failure(status.HTTP_400_BAD_REQUEST, message or "Invalid request")


def add_exception_handlers(app: FastAPI) -> FastAPI:
    """
    Map the service layer's exceptions onto `{"success": false, "message"}`
    responses. Errors from the backend keep the backend's status code.
    """
    for exception in STATUS_CODES:
        app.add_exception_handler(exception, domain_error_handler)

    app.add_exception_handler(BackendError, backend_error_handler)
    app.add_exception_handler(BackendUnavailable, backend_unavailable_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    return app


def create_app(
    settings: Settings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """
    Create the dashboard app.

    Parameters
    ----------
    settings: Settings | None, optional
        Defaults to the settings read from the environment.
    transport: httpx.AsyncBaseTransport | None, optional
        Transport for the backend client. When left out and
        `use_mock_backend` is set, an in-memory seeded backend is served,
        accepting `mock_token` as the super admin's token.
    """
    settings = settings or SETTINGS()

    if transport is None and settings.use_mock_backend:
        transport = MockBackend.seeded(settings.mock_token).transport()

    async def lifespan(app: FastAPI):
        await logger().ainfo(
            "api.startup",
            backend=settings.backend_base_url,
            mock_backend=settings.use_mock_backend,
        )
        yield

    app = FastAPI(
        lifespan=lifespan,
        root_path=settings.management_path,
        title="Zaron Admin API",
        summary=(
            "Group, membership and staff approval management for the Zaron "
            "admin dashboard."
        ),
        version=version("zaron-admin"),
    )

    app.state.settings = settings
    app.state.backend_transport = transport

    app = add_exception_handlers(app)

    app.include_router(group_app, prefix="/admin/groups")
    app.include_router(admin_routes, prefix="/admin/admins")
    app.include_router(approval_routes, prefix="/admin/approvals")

    return app


app = create_app()
