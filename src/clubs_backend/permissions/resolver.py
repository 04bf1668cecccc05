"""
Role resolution for a single request.

A RoleResolver is created per request. It loads the role bindings of a
principal once and answers every role, level and club-scope question from
that snapshot. Read failures are logged and resolve to "no roles", or raise
UpstreamUnavailableException on a strict resolver.
"""

import logging
import unicodedata
import datetime
from typing import Dict, Optional, Set

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clubs_backend.api.exceptions import NotFoundException, UpstreamUnavailableException
from clubs_backend.model.auth import Profile
from clubs_backend.permissions.core import (
    db_find_coach_clubs,
    db_find_role_bindings,
    db_find_role_by_name,
    db_get_profile,
    db_latest_approved_club_id,
    db_upsert_role_binding,
    utcnow,
)
from clubs_backend.permissions.principal import Principal, RoleBinding

logger = logging.getLogger(__name__)


def normalize_name(value: Optional[str]) -> str:
    """Lower-case, accent-free, single-spaced form of a person name"""
    if not value:
        return ""
    decomposed = unicodedata.normalize("NFKD", value)
    stripped = "".join(c for c in decomposed if not unicodedata.combining(c))
    return " ".join(stripped.casefold().split())


class RoleResolver:

    MIN_SIMILARITY_LENGTH = 3

    def __init__(self, db: Session, now: Optional[datetime.datetime] = None, strict: bool = False):
        self.db = db
        self.strict = strict
        self.now = now or utcnow()
        self._principals: Dict[str, Principal] = {}

    def _rollback_quietly(self):
        try:
            self.db.rollback()
        except SQLAlchemyError as e:
            logger.warning(f"Rollback after failed read did not succeed: {e}")

    def _read_failed(self, what: str, error: Exception):
        logger.error(f"Error fetching {what}: {error}")
        self._rollback_quietly()
        if self.strict:
            raise UpstreamUnavailableException(f"Error while fetching {what}")

    # read side

    def principal(self, principal_id: Optional[str]) -> Principal:
        """Principal with its active bindings; no bindings when anything goes wrong"""
        if not principal_id:
            return Principal()

        if principal_id in self._principals:
            return self._principals[principal_id]

        try:
            rows = db_find_role_bindings(principal_id, self.db)
        except SQLAlchemyError as e:
            self._read_failed(f"role bindings for {principal_id}", e)
            rows = []

        bindings = [
            RoleBinding(
                role=row.role,
                level=row.level,
                club_id=row.club_id,
                granted_at=row.granted_at,
                expires_at=row.expires_at,
            )
            for row in rows
        ]
        principal = Principal(
            user_id=principal_id,
            bindings=[b for b in bindings if b.is_active(self.now)],
        )
        self._principals[principal_id] = principal
        return principal

    def list_role_names(self, principal_id: Optional[str]) -> Set[str]:
        return self.principal(principal_id).role_names

    def has_any_role_at_level_or_below(self, principal_id: Optional[str], max_level: int) -> bool:
        return self.principal(principal_id).has_level_at_or_below(max_level)

    def is_admin_or_developer(self, principal_id: Optional[str]) -> bool:
        return self.principal(principal_id).is_admin

    def _profile(self, principal_id: str) -> Optional[Profile]:
        try:
            return db_get_profile(principal_id, self.db)
        except SQLAlchemyError as e:
            self._read_failed(f"profile for {principal_id}", e)
            return None

    def _club_by_staff_name(self, profile: Optional[Profile]) -> Optional[str]:
        # TODO: replace with an explicit coach -> club foreign key on the binding
        if profile is None:
            return None

        names = [n for n in (normalize_name(profile.full_name), normalize_name(profile.username)) if n]
        if not names:
            return None

        try:
            staff = db_find_coach_clubs(self.db)
        except SQLAlchemyError as e:
            self._read_failed("coach records", e)
            return None

        candidates = [(normalize_name(name), club_id) for name, club_id in staff]

        for staff_name, club_id in candidates:
            if staff_name in names:
                return club_id

        for staff_name, club_id in candidates:
            if len(staff_name) < self.MIN_SIMILARITY_LENGTH:
                continue
            for name in names:
                if len(name) >= self.MIN_SIMILARITY_LENGTH and (name in staff_name or staff_name in name):
                    logger.info(f"Club of {profile.id} guessed from staff record '{staff_name}'")
                    return club_id

        return None

    def club_scope_for(self, principal_id: Optional[str], role_name: str) -> Optional[str]:
        """Club a principal's role is scoped to.

        Explicit binding scope first, then the preferred club of the profile,
        then a last-resort match of the profile name against staff records.
        """
        principal = self.principal(principal_id)
        if not principal.has_role(role_name):
            return None

        scoped = principal.club_ids_for(role_name)
        if scoped:
            return scoped[0]

        profile = self._profile(principal_id)
        if profile is not None and profile.favorite_club_id:
            return profile.favorite_club_id

        return self._club_by_staff_name(profile)

    def effective_club_id(self, principal_id: Optional[str]) -> Optional[str]:
        """Home club for display: student scope > preferred club > latest approved request"""
        principal = self.principal(principal_id)
        if principal.user_id is None:
            return None

        student_clubs = principal.club_ids_for("student")
        if student_clubs:
            return student_clubs[0]

        profile = self._profile(principal_id)
        if profile is not None and profile.favorite_club_id:
            return profile.favorite_club_id

        try:
            return db_latest_approved_club_id(principal_id, self.db)
        except SQLAlchemyError as e:
            self._read_failed(f"approved membership requests for {principal_id}", e)
            return None

    def can_view_club_contact(self, principal_id: Optional[str]) -> bool:
        """Contact details are hidden from anonymous callers and from club-less plain users"""
        principal = self.principal(principal_id)
        if not principal.bindings:
            return False
        return not any(b.role == "user" and b.club_id is None for b in principal.bindings)

    # write side

    def grant_role(self, principal_id: str, role_name: str, club_id: Optional[str], granted_by: Optional[str]):
        """Idempotently bind role_name (scoped to club_id) to the principal"""
        try:
            role = db_find_role_by_name(role_name, self.db)
            if role is None:
                raise NotFoundException(f"Role {role_name} not found")
            db_upsert_role_binding(principal_id, role.id, club_id, granted_by, self.db)
        except SQLAlchemyError as e:
            logger.error(f"Error granting role {role_name} to {principal_id}: {e}")
            self._rollback_quietly()
            raise UpstreamUnavailableException(f"Could not grant role {role_name}")
        finally:
            self._principals.pop(principal_id, None)

        logger.info(f"Granted role {role_name} (club {club_id}) to {principal_id} by {granted_by}")
