"""
Persistence contracts used by the authorization core.

Every function takes an open SQLAlchemy session and performs a single query
or update. Callers decide how failures are handled: readers in the resolver
fail closed, the membership workflow fails loud.
"""

import datetime
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from clubs_backend.api.exceptions import NotFoundException
from clubs_backend.model.auth import Profile
from clubs_backend.model.base import new_id
from clubs_backend.model.club import Coach, MembershipRequest
from clubs_backend.model.role import Role, UserRole
from clubs_backend.model.site import SiteSetting


@dataclass(frozen=True)
class RoleBindingRow:
    role: str
    level: int
    club_id: Optional[str]
    granted_at: Optional[datetime.datetime]
    expires_at: Optional[datetime.datetime]


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def as_utc(value: Optional[datetime.datetime]) -> Optional[datetime.datetime]:
    """Naive timestamps coming back from the store are UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=datetime.timezone.utc)
    return value


def db_find_role_bindings(principal_id: str, db: Session) -> List[RoleBindingRow]:
    """All role bindings of a principal joined with their role name and level"""

    rows = (
        db.query(Role.name, Role.level, UserRole.club_id, UserRole.granted_at, UserRole.expires_at)
        .select_from(UserRole)
        .join(Role, Role.id == UserRole.role_id)
        .filter(UserRole.user_id == principal_id)
        .order_by(UserRole.granted_at.desc())
        .all()
    )

    return [
        RoleBindingRow(
            role=name,
            level=level,
            club_id=club_id,
            granted_at=as_utc(granted_at),
            expires_at=as_utc(expires_at),
        )
        for name, level, club_id, granted_at, expires_at in rows
    ]


def db_find_role_by_name(role_name: str, db: Session) -> Optional[Role]:
    return db.query(Role).filter(Role.name == role_name).first()


def dialect_insert(db: Session):
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert
    if dialect == "sqlite":
        return sqlite.insert
    raise NotImplementedError(f"Upsert not supported for dialect {dialect}")


def db_upsert_role_binding(principal_id: str, role_id: str, club_id: Optional[str], granted_by: Optional[str], db: Session):
    """Insert a role binding or refresh granted_by/granted_at of the existing one.

    Relies on the (user_id, role_id, club_id) unique constraint, so two
    concurrent grants of the same tuple end up as a single row.
    """
    insert = dialect_insert(db)
    now = utcnow()

    stmt = insert(UserRole).values(
        id=new_id(),
        user_id=principal_id,
        role_id=role_id,
        club_id=club_id,
        granted_by=granted_by,
        granted_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["user_id", "role_id", "club_id"],
        set_={"granted_by": stmt.excluded.granted_by, "granted_at": stmt.excluded.granted_at},
    )
    db.execute(stmt)
    db.commit()


def db_find_membership_request(request_id: str, db: Session) -> Optional[MembershipRequest]:
    return db.query(MembershipRequest).filter(MembershipRequest.id == request_id).first()


def db_conditional_update_membership_request_status(
    request_id: str,
    expected_status: str,
    new_status: str,
    reviewer_id: str,
    timestamp: datetime.datetime,
    db: Session,
) -> bool:
    """Update-where-status-matches. Returns False when another writer got there first."""

    result = db.execute(
        update(MembershipRequest)
        .where(MembershipRequest.id == request_id, MembershipRequest.status == expected_status)
        .values(status=new_status, reviewed_at=timestamp, reviewed_by=reviewer_id)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount == 1


def db_latest_approved_club_id(principal_id: str, db: Session) -> Optional[str]:
    return db.scalar(
        select(MembershipRequest.club_id)
        .where(MembershipRequest.user_id == principal_id, MembershipRequest.status == "approved")
        .order_by(MembershipRequest.requested_at.desc())
        .limit(1)
    )


def db_get_config_flag(key: str, db: Session) -> Optional[Any]:
    return db.scalar(select(SiteSetting.value).where(SiteSetting.key == key))


def db_set_config_flag(key: str, value: Any, db: Session):
    setting = db.get(SiteSetting, key)
    if setting is None:
        db.add(SiteSetting(key=key, value=value))
    else:
        setting.value = value
    db.commit()


def db_get_profile(principal_id: str, db: Session) -> Optional[Profile]:
    return db.get(Profile, principal_id)


def db_update_profile_preferred_club(principal_id: str, club_id: Optional[str], db: Session):
    result = db.execute(
        update(Profile)
        .where(Profile.id == principal_id)
        .values(favorite_club_id=club_id)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        db.rollback()
        raise NotFoundException(f"Profile {principal_id} not found")
    db.commit()


def db_find_coach_clubs(db: Session) -> List[Tuple[str, str]]:
    """(coach name, club id) of active coaches attached to a club, in display order"""
    rows = (
        db.query(Coach.name, Coach.club_id)
        .filter(Coach.active.is_(True), Coach.club_id.isnot(None))
        .order_by(Coach.display_order.asc(), Coach.name.asc())
        .all()
    )
    return [(name, club_id) for name, club_id in rows]
