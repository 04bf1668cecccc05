from typing import Annotated
from fastapi import APIRouter, Depends

from clubs_backend.api.auth import get_current_principal_id, get_membership_workflow, require_admin
from clubs_backend.interface.memberships import MembershipRequestCreate, MembershipReview
from clubs_backend.services.membership import MembershipWorkflow

admin_membership_router = APIRouter()
club_membership_router = APIRouter()


@admin_membership_router.get("/membership-requests")
async def pending_membership_summary(
    principal_id: Annotated[str, Depends(require_admin)],
    workflow: Annotated[MembershipWorkflow, Depends(get_membership_workflow)],
):
    """Number of pending membership requests per club"""
    summary = workflow.pending_summary()
    return {"success": True, "data": summary.model_dump(by_alias=True)}


@admin_membership_router.get("/{club_id}/membership-requests")
async def list_pending_membership_requests(
    club_id: str,
    principal_id: Annotated[str, Depends(get_current_principal_id)],
    workflow: Annotated[MembershipWorkflow, Depends(get_membership_workflow)],
):
    """Pending membership requests of one club, for its reviewers"""
    workflow.authorize_club_reviewer(principal_id, club_id)
    entries = workflow.pending_requests_for_club(club_id)
    return {"success": True, "data": [e.model_dump(by_alias=True) for e in entries]}


@admin_membership_router.patch("/membership-requests/{request_id}")
async def review_membership_request(
    request_id: str,
    body: MembershipReview,
    principal_id: Annotated[str, Depends(get_current_principal_id)],
    workflow: Annotated[MembershipWorkflow, Depends(get_membership_workflow)],
):
    result = workflow.review(request_id, principal_id, body.action)
    return {"success": True, "data": result.model_dump(by_alias=True)}


@club_membership_router.post("/request-membership")
async def request_membership(
    body: MembershipRequestCreate,
    principal_id: Annotated[str, Depends(get_current_principal_id)],
    workflow: Annotated[MembershipWorkflow, Depends(get_membership_workflow)],
):
    created = workflow.request_membership(principal_id, body.club_id)
    return {"success": True, "data": created.model_dump(by_alias=True)}


@club_membership_router.get("/membership-status")
async def membership_status(
    principal_id: Annotated[str, Depends(get_current_principal_id)],
    workflow: Annotated[MembershipWorkflow, Depends(get_membership_workflow)],
):
    status = workflow.membership_status(principal_id)
    return {"success": True, "data": status.model_dump(by_alias=True)}
