import logging
from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from clubs_backend.api.clubs import clubs_router, user_role_router
from clubs_backend.api.memberships import admin_membership_router, club_membership_router
from clubs_backend.api.middleware import RouteGateMiddleware
from clubs_backend.api.site_settings import site_settings_router
from clubs_backend.auth.gotrue import GoTrueIdentityProvider
from clubs_backend.auth.providers import IdentityProvider
from clubs_backend.database import open_session
from clubs_backend.permissions.gate import GateConfig
from clubs_backend.permissions.role_setup import db_apply_default_roles
from clubs_backend.settings import settings

logger = logging.getLogger(__name__)


async def startup_logic(session_factory: Callable[[], Session] = open_session):

    db = session_factory()
    try:
        db_apply_default_roles(db)
    finally:
        db.close()


async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        {"success": False, "error": exc.detail},
        status_code=exc.status_code,
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.info(f"Invalid request on {request.url.path}: {exc.errors()}")
    return JSONResponse(
        {"success": False, "error": "Invalid request data"},
        status_code=status.HTTP_400_BAD_REQUEST,
    )


def create_app(
    provider: Optional[IdentityProvider] = None,
    session_factory: Optional[Callable[[], Session]] = None,
    enable_route_gate: Optional[bool] = None,
) -> FastAPI:

    session_factory = session_factory or open_session

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if settings.DEBUG_MODE == "production":
            await startup_logic(session_factory)
        yield
        app.state.identity_provider.close()

    app = FastAPI(lifespan=lifespan)
    app.state.identity_provider = provider or GoTrueIdentityProvider.from_settings(settings)

    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    if enable_route_gate is None:
        enable_route_gate = settings.ENABLE_ROUTE_GATE

    if enable_route_gate:
        app.add_middleware(
            RouteGateMiddleware,
            provider=app.state.identity_provider,
            session_factory=session_factory,
            config=GateConfig.from_settings(settings),
        )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(
        admin_membership_router,
        prefix="/api/admin/clubs",
        tags=["clubs", "memberships", "admin"]
    )

    app.include_router(
        user_role_router,
        prefix="/api/admin",
        tags=["user", "roles"]
    )

    app.include_router(
        club_membership_router,
        prefix="/api/clubs",
        tags=["clubs", "memberships"]
    )

    app.include_router(
        clubs_router,
        prefix="/api/clubs",
        tags=["clubs"]
    )

    app.include_router(
        site_settings_router,
        prefix="/api/site-settings",
        tags=["site settings"]
    )

    return app


app = create_app()
