"""
Per-request route gating.

RouteGate.decide() classifies the request path and combines session
validity, role queries and the runtime flags into ALLOW, REDIRECT or DENY.
Rules are evaluated in a fixed order and the first one that matches wins:

1. maintenance     - everything but the API, the maintenance page and sign-in
2. dashboard       - usable session required
3. admin area      - usable session and admin/developer role required
3b. admin API      - usable session required (role checks live in handlers)
4. hidden shop     - developers only while the shop is hidden
5. sign-in/sign-up - already authenticated principals go to the dashboard
6. allow
"""

import datetime
import logging
from enum import Enum
from typing import Any, Dict, Optional, Tuple
from urllib.parse import urlencode

from fastapi import status
from pydantic import BaseModel, ConfigDict, Field

from clubs_backend.auth.providers import SessionRecord
from clubs_backend.permissions.flags import ConfigFlags
from clubs_backend.permissions.principal import ELEVATED_LEVEL
from clubs_backend.permissions.resolver import RoleResolver
from clubs_backend.permissions.session import is_session_usable
from clubs_backend.settings import BackendSettings

logger = logging.getLogger(__name__)

UNAUTHORIZED_MARKER = "unauthorized"


class GateOutcome(str, Enum):
    ALLOW = "allow"
    REDIRECT = "redirect"
    DENY = "deny"


class GateDecision(BaseModel):
    outcome: GateOutcome
    path: Optional[str] = None
    query: Dict[str, str] = Field(default_factory=dict)
    status_code: Optional[int] = None
    reason: Optional[str] = None

    @classmethod
    def allow(cls) -> "GateDecision":
        return cls(outcome=GateOutcome.ALLOW)

    @classmethod
    def redirect(cls, path: str, **query: str) -> "GateDecision":
        return cls(outcome=GateOutcome.REDIRECT, path=path, query=query)

    @classmethod
    def deny(cls, status_code: int, reason: str) -> "GateDecision":
        return cls(outcome=GateOutcome.DENY, status_code=status_code, reason=reason)

    def location(self) -> Optional[str]:
        if self.outcome != GateOutcome.REDIRECT:
            return None
        if not self.query:
            return self.path
        return f"{self.path}?{urlencode(self.query, safe='/')}"


class GateConfig(BaseModel):
    """Route layout the gate classifies paths against"""
    dashboard_prefix: str = "/dashboard"
    admin_prefix: str = "/admin"
    api_prefix: str = "/api"
    admin_api_prefix: str = "/api/admin"
    maintenance_path: str = "/maintenance"
    signin_path: str = "/signin"
    signup_path: str = "/signup"
    site_root: str = "/"
    shop_prefixes: Tuple[str, ...] = ("/shop", "/cart", "/checkout")

    @classmethod
    def from_settings(cls, settings: BackendSettings) -> "GateConfig":
        return cls(
            dashboard_prefix=settings.DASHBOARD_PREFIX,
            admin_prefix=settings.ADMIN_PREFIX,
            api_prefix=settings.API_PREFIX,
            admin_api_prefix=settings.ADMIN_API_PREFIX,
            maintenance_path=settings.MAINTENANCE_PATH,
            signin_path=settings.SIGNIN_PATH,
            signup_path=settings.SIGNUP_PATH,
            site_root=settings.SITE_ROOT,
            shop_prefixes=settings.SHOP_PREFIXES,
        )


class GateRequest(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    path: str
    session: Optional[SessionRecord] = None
    session_error: Optional[Any] = None


def path_under(path: str, prefix: str) -> bool:
    """Prefix match on path segment boundaries (/admin matches /admin/x, not /administer)"""
    prefix = prefix.rstrip("/")
    if not prefix:
        return True
    return path == prefix or path.startswith(prefix + "/")


class RouteGate:

    def __init__(
        self,
        resolver: RoleResolver,
        flags: ConfigFlags,
        config: Optional[GateConfig] = None,
        now: Optional[datetime.datetime] = None,
    ):
        self.resolver = resolver
        self.flags = flags
        self.config = config or GateConfig()
        self.now = now

    def _maintenance_exempt(self, path: str) -> bool:
        return (
            path_under(path, self.config.api_prefix)
            or path_under(path, self.config.maintenance_path)
            or path == self.config.signin_path
        )

    def _signin_redirect(self, path: str) -> GateDecision:
        return GateDecision.redirect(self.config.signin_path, redirect=path)

    def decide(self, request: GateRequest) -> GateDecision:
        decision = self._decide(request)
        logger.debug(f"Gate {request.path}: {decision.outcome.value} {decision.location() or ''}")
        return decision

    def _decide(self, request: GateRequest) -> GateDecision:
        path = request.path or "/"
        config = self.config

        usable = is_session_usable(request.session, request.session_error, self.now)
        principal_id = request.session.user_id if usable else None

        # 1. maintenance dominates everything it covers
        if not self._maintenance_exempt(path) and self.flags.maintenance_enabled:
            if not (usable and self.resolver.has_any_role_at_level_or_below(principal_id, ELEVATED_LEVEL)):
                return GateDecision.redirect(config.maintenance_path)

        # 2. authenticated dashboard
        if path_under(path, config.dashboard_prefix):
            if not usable:
                return self._signin_redirect(path)
            return GateDecision.allow()

        # 3. administrative area
        if path_under(path, config.admin_prefix):
            if not usable:
                return self._signin_redirect(path)
            if not self.resolver.is_admin_or_developer(principal_id):
                return GateDecision.redirect(config.dashboard_prefix, error=UNAUTHORIZED_MARKER)
            return GateDecision.allow()

        # 3b. administrative API
        if path_under(path, config.admin_api_prefix):
            if not usable:
                return GateDecision.deny(status.HTTP_401_UNAUTHORIZED, "Not authenticated")
            return GateDecision.allow()

        # 4. hidden shop
        if any(path_under(path, prefix) for prefix in config.shop_prefixes) and self.flags.shop_hidden:
            if usable and "developer" in self.resolver.list_role_names(principal_id):
                return GateDecision.allow()
            return GateDecision.redirect(config.site_root)

        # 5. sign-in / sign-up for principals who are already signed in
        if path in (config.signin_path, config.signup_path):
            if usable:
                return GateDecision.redirect(config.dashboard_prefix)
            return GateDecision.allow()

        return GateDecision.allow()
