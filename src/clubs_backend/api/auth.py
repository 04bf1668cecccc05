import logging
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from clubs_backend.api.exceptions import (
    ForbiddenException,
    NotAuthenticatedException,
    UpstreamUnavailableException,
)
from clubs_backend.auth.providers import IdentityProvider, PrincipalInfo
from clubs_backend.database import get_db
from clubs_backend.permissions.resolver import RoleResolver
from clubs_backend.services.membership import MembershipWorkflow

logger = logging.getLogger(__name__)


def get_identity_provider(request: Request) -> IdentityProvider:
    return request.app.state.identity_provider


def get_current_user(
    request: Request,
    provider: Annotated[IdentityProvider, Depends(get_identity_provider)],
) -> PrincipalInfo:
    """Principal verified with the identity provider, or 401"""

    user, error = provider.get_current_user(request)

    if isinstance(error, UpstreamUnavailableException):
        raise error
    if error is not None or user is None:
        if error is not None:
            logger.info(f"Rejected principal: {error!r}")
        raise NotAuthenticatedException()

    return user


def get_current_principal_id(user: Annotated[PrincipalInfo, Depends(get_current_user)]) -> str:
    return user.id


def get_role_resolver(db: Session = Depends(get_db)) -> RoleResolver:
    return RoleResolver(db)


def get_membership_workflow(db: Session = Depends(get_db)) -> MembershipWorkflow:
    """Workflow whose role reads fail loud instead of resolving to no roles"""
    return MembershipWorkflow(db)


def require_admin(
    principal_id: Annotated[str, Depends(get_current_principal_id)],
    resolver: Annotated[RoleResolver, Depends(get_role_resolver)],
) -> str:
    if not resolver.is_admin_or_developer(principal_id):
        raise ForbiddenException()
    return principal_id
