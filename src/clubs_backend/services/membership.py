"""
Club membership workflow.

A membership request moves one way only: pending -> approved or
pending -> rejected. The status change is a conditional update so that two
reviewers racing on the same request produce exactly one winner. Approval
then updates the requester's preferred club and grants the club-scoped
"student" role; both are idempotent and retried independently, so a failure
there is reported as a warning and does not undo the approval.

Role reads go through a strict resolver: a failed read surfaces as
UpstreamUnavailableException instead of a refusal.
"""

import logging
from typing import Callable, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from clubs_backend.api.exceptions import (
    AlreadyReviewedException,
    BadRequestException,
    ConflictException,
    ForbiddenException,
    NotFoundException,
    UpstreamUnavailableException,
)
from clubs_backend.interface.memberships import (
    REVIEW_OUTCOMES,
    MembershipRequestCreated,
    MembershipRequestGet,
    MembershipStatus,
    MembershipStatusGet,
    PendingClubCount,
    PendingRequestEntry,
    PendingSummary,
    ReviewAction,
    ReviewResult,
)
from clubs_backend.model.auth import Profile, User
from clubs_backend.model.club import Club, MembershipRequest
from clubs_backend.permissions.core import (
    db_conditional_update_membership_request_status,
    db_find_membership_request,
    db_get_profile,
    db_update_profile_preferred_club,
    utcnow,
)
from clubs_backend.permissions.resolver import RoleResolver

logger = logging.getLogger(__name__)

MEMBER_ROLE = "student"
REVIEWER_SCOPE_ROLE = "coach"
DEFAULT_DISPLAY_NAME = "Utilisateur"


class MembershipWorkflow:

    def __init__(self, db: Session, resolver: Optional[RoleResolver] = None, clock: Callable = utcnow):
        self.db = db
        self.resolver = resolver or RoleResolver(db, strict=True)
        self.clock = clock

    def _upstream_error(self, what: str, error: Exception) -> UpstreamUnavailableException:
        logger.error(f"Error while {what}: {error}")
        self.db.rollback()
        return UpstreamUnavailableException(f"Error while {what}")

    def authorize_club_reviewer(self, reviewer_id: str, club_id: str):
        """Admins and developers review every club, coaches only their own"""
        if self.resolver.is_admin_or_developer(reviewer_id):
            return
        coach_club_id = self.resolver.club_scope_for(reviewer_id, REVIEWER_SCOPE_ROLE)
        if coach_club_id is not None and coach_club_id == club_id:
            return
        raise ForbiddenException("not authorized for this club")

    def review(self, request_id: str, reviewer_id: str, action: ReviewAction | str) -> ReviewResult:
        try:
            action = ReviewAction(action)
        except ValueError:
            raise BadRequestException('Action must be "approve" or "reject"')

        try:
            membership = db_find_membership_request(request_id, self.db)
        except SQLAlchemyError as e:
            raise self._upstream_error(f"loading membership request {request_id}", e)

        if membership is None:
            raise NotFoundException("Membership request not found")

        self.authorize_club_reviewer(reviewer_id, membership.club_id)

        if membership.status != MembershipStatus.PENDING.value:
            raise AlreadyReviewedException()

        user_id, club_id = membership.user_id, membership.club_id
        new_status = REVIEW_OUTCOMES[action]

        try:
            won = db_conditional_update_membership_request_status(
                request_id,
                MembershipStatus.PENDING.value,
                new_status.value,
                reviewer_id,
                self.clock(),
                self.db,
            )
        except SQLAlchemyError as e:
            raise self._upstream_error(f"updating membership request {request_id}", e)

        if not won:
            logger.info(f"Membership request {request_id} was reviewed concurrently")
            raise AlreadyReviewedException()

        logger.info(f"Membership request {request_id} {new_status.value} by {reviewer_id}")

        warnings: List[str] = []
        if action == ReviewAction.APPROVE:
            warnings = self._apply_approval(user_id, club_id, reviewer_id)
            message = "Request approved"
        else:
            message = "Request rejected"

        return ReviewResult(request_id=request_id, status=new_status, message=message, warnings=warnings)

    def _apply_approval(self, user_id: str, club_id: str, reviewer_id: str) -> List[str]:
        warnings = []

        try:
            db_update_profile_preferred_club(user_id, club_id, self.db)
        except (SQLAlchemyError, NotFoundException) as e:
            logger.error(f"Error updating preferred club of {user_id}: {e}")
            self.db.rollback()
            warnings.append("preferred club not updated")

        try:
            self.resolver.grant_role(user_id, MEMBER_ROLE, club_id, reviewer_id)
        except (UpstreamUnavailableException, NotFoundException) as e:
            logger.error(f"Error granting {MEMBER_ROLE} role to {user_id}: {e.detail}")
            warnings.append(f"{MEMBER_ROLE} role not granted")

        return warnings

    def request_membership(self, principal_id: str, club_id: str) -> MembershipRequestCreated:
        try:
            club = self.db.query(Club).filter(Club.id == club_id, Club.active.is_(True)).first()
            existing = (
                self.db.query(MembershipRequest.status)
                .filter(
                    MembershipRequest.user_id == principal_id,
                    MembershipRequest.club_id == club_id,
                    MembershipRequest.status.in_([MembershipStatus.PENDING.value, MembershipStatus.APPROVED.value]),
                )
                .all()
            )
        except SQLAlchemyError as e:
            raise self._upstream_error(f"checking membership of {principal_id} in {club_id}", e)

        if club is None:
            raise NotFoundException("Club not found or inactive")

        statuses = {row[0] for row in existing}
        if MembershipStatus.PENDING.value in statuses:
            raise ConflictException("already pending")
        if MembershipStatus.APPROVED.value in statuses:
            raise ConflictException("already a member")

        membership = MembershipRequest(user_id=principal_id, club_id=club_id, status=MembershipStatus.PENDING.value)
        try:
            self.db.add(membership)
            self.db.commit()
        except IntegrityError as e:
            logger.info(f"Duplicate membership request of {principal_id} for {club_id}: {e}")
            self.db.rollback()
            raise ConflictException("already pending")
        except SQLAlchemyError as e:
            raise self._upstream_error(f"creating membership request of {principal_id}", e)

        logger.info(f"Membership request {membership.id} created by {principal_id} for club {club_id}")

        return MembershipRequestCreated(request_id=membership.id, club_name=club.name, status=membership.status)

    def membership_status(self, principal_id: str) -> MembershipStatusGet:
        try:
            profile = db_get_profile(principal_id, self.db)
            requests = (
                self.db.query(MembershipRequest)
                .filter(
                    MembershipRequest.user_id == principal_id,
                    MembershipRequest.status.in_([MembershipStatus.PENDING.value, MembershipStatus.APPROVED.value]),
                )
                .order_by(MembershipRequest.requested_at.desc())
                .all()
            )
        except SQLAlchemyError as e:
            raise self._upstream_error(f"loading membership status of {principal_id}", e)

        favorite_club_id = profile.favorite_club_id if profile is not None else None
        items = [MembershipRequestGet.model_validate(r) for r in requests]

        return MembershipStatusGet(
            has_club=favorite_club_id is not None,
            favorite_club_id=favorite_club_id,
            effective_club_id=self.resolver.effective_club_id(principal_id),
            pending_requests=[i for i in items if i.status == MembershipStatus.PENDING.value],
            approved_requests=[i for i in items if i.status == MembershipStatus.APPROVED.value],
        )

    def pending_requests_for_club(self, club_id: str) -> List[PendingRequestEntry]:
        try:
            rows = (
                self.db.query(
                    MembershipRequest.id,
                    MembershipRequest.user_id,
                    MembershipRequest.requested_at,
                    Profile.full_name,
                    Profile.username,
                    User.email,
                )
                .select_from(MembershipRequest)
                .outerjoin(Profile, Profile.id == MembershipRequest.user_id)
                .outerjoin(User, User.id == MembershipRequest.user_id)
                .filter(
                    MembershipRequest.club_id == club_id,
                    MembershipRequest.status == MembershipStatus.PENDING.value,
                )
                .order_by(MembershipRequest.requested_at.desc())
                .all()
            )
        except SQLAlchemyError as e:
            raise self._upstream_error(f"loading pending requests of club {club_id}", e)

        return [
            PendingRequestEntry(
                id=row.id,
                user_id=row.user_id,
                full_name=row.full_name or row.username or DEFAULT_DISPLAY_NAME,
                email=row.email or "",
                requested_at=row.requested_at,
            )
            for row in rows
        ]

    def pending_summary(self) -> PendingSummary:
        count = func.count(MembershipRequest.id)
        try:
            rows = (
                self.db.query(Club.id, Club.name, Club.city, Club.slug, count.label("pending_count"))
                .join(MembershipRequest, MembershipRequest.club_id == Club.id)
                .filter(MembershipRequest.status == MembershipStatus.PENDING.value)
                .group_by(Club.id, Club.name, Club.city, Club.slug)
                .order_by(count.desc(), Club.name.asc())
                .all()
            )
        except SQLAlchemyError as e:
            raise self._upstream_error("counting pending membership requests", e)

        by_club = [
            PendingClubCount(club_id=row.id, club_name=row.name, club_city=row.city, club_slug=row.slug, count=row.pending_count)
            for row in rows
        ]
        return PendingSummary(total_pending=sum(c.count for c in by_club), by_club=by_club)
