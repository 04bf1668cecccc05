from typing import Annotated
from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError

from clubs_backend.api.auth import get_current_principal_id, get_role_resolver
from clubs_backend.api.exceptions import UpstreamUnavailableException
from clubs_backend.interface.roles import ContactVisibilityGet, CoachRoleGet, MyClubGet
from clubs_backend.model.club import Club
from clubs_backend.permissions.resolver import RoleResolver

clubs_router = APIRouter()
user_role_router = APIRouter()


@clubs_router.get("/my-club")
async def my_club(
    principal_id: Annotated[str, Depends(get_current_principal_id)],
    resolver: Annotated[RoleResolver, Depends(get_role_resolver)],
):
    """Home club of the caller, or null when there is none"""
    club_id = resolver.effective_club_id(principal_id)
    if club_id is None:
        return {"success": True, "data": None}

    try:
        club = resolver.db.query(Club).filter(Club.id == club_id, Club.active.is_(True)).first()
    except SQLAlchemyError:
        resolver.db.rollback()
        raise UpstreamUnavailableException("Error while loading club")

    if club is None:
        return {"success": True, "data": None}

    data = MyClubGet(club_id=club.id, name=club.name, slug=club.slug, city=club.city)
    return {"success": True, "data": data.model_dump(by_alias=True)}


@clubs_router.get("/contact-visibility")
async def contact_visibility(
    principal_id: Annotated[str, Depends(get_current_principal_id)],
    resolver: Annotated[RoleResolver, Depends(get_role_resolver)],
):
    data = ContactVisibilityGet(can_view_contact=resolver.can_view_club_contact(principal_id))
    return {"success": True, "data": data.model_dump(by_alias=True)}


@user_role_router.get("/user-role")
async def coach_role(
    principal_id: Annotated[str, Depends(get_current_principal_id)],
    resolver: Annotated[RoleResolver, Depends(get_role_resolver)],
):
    """Whether the caller is a coach, and of which club"""
    is_coach = "coach" in resolver.list_role_names(principal_id)
    data = CoachRoleGet(
        is_coach=is_coach,
        coach_club_id=resolver.club_scope_for(principal_id, "coach") if is_coach else None,
    )
    return {"success": True, **data.model_dump(by_alias=True)}
