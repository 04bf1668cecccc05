import logging
from typing import Callable, Optional

from fastapi import Request, Response
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware

from clubs_backend.auth.providers import IdentityProvider
from clubs_backend.database import open_session
from clubs_backend.permissions.flags import ConfigFlags
from clubs_backend.permissions.gate import GateConfig, GateDecision, GateOutcome, GateRequest, RouteGate
from clubs_backend.permissions.resolver import RoleResolver

logger = logging.getLogger(__name__)


class RouteGateMiddleware(BaseHTTPMiddleware):
    """
    Runs the route gate before any route handler.

    REDIRECT decisions become 307 redirects, DENY decisions a JSON error
    envelope, ALLOW hands the request to the application.
    """

    def __init__(
        self,
        app,
        *,
        provider: IdentityProvider,
        session_factory: Callable[[], Session] = open_session,
        config: Optional[GateConfig] = None,
    ):
        super().__init__(app)
        self.provider = provider
        self.session_factory = session_factory
        self.config = config or GateConfig()

    def evaluate(self, request: Request) -> GateDecision:
        session, error = self.provider.get_current_session(request)
        if error is not None:
            logger.info(f"Session lookup failed for {request.url.path}: {error!r}")

        db = self.session_factory()
        try:
            gate = RouteGate(RoleResolver(db), ConfigFlags(db), self.config)
            return gate.decide(GateRequest(path=request.url.path, session=session, session_error=error))
        finally:
            db.close()

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        decision = await run_in_threadpool(self.evaluate, request)

        if decision.outcome == GateOutcome.REDIRECT:
            return RedirectResponse(decision.location(), status_code=307)

        if decision.outcome == GateOutcome.DENY:
            return JSONResponse(
                {"success": False, "error": decision.reason},
                status_code=decision.status_code,
            )

        return await call_next(request)
