"""
Data builders shared by the test modules.
"""

import time
from typing import Optional

from clubs_backend.auth.providers import IdentityProvider, PrincipalInfo, SessionRecord
from clubs_backend.model.auth import Profile, User
from clubs_backend.model.club import Club, Coach, MembershipRequest
from clubs_backend.model.role import Role, UserRole

TEST_USER_HEADER = "X-Test-User"


def make_user(db, username: str, full_name: Optional[str] = None, favorite_club_id: Optional[str] = None, profile: bool = True) -> User:
    user = User(email=f"{username}@example.org")
    db.add(user)
    db.flush()
    if profile:
        db.add(Profile(id=user.id, username=username, full_name=full_name, favorite_club_id=favorite_club_id))
    db.commit()
    return user


def make_club(db, name: str, city: Optional[str] = None, active: bool = True) -> Club:
    club = Club(name=name, slug=name.lower().replace(" ", "-"), city=city, active=active)
    db.add(club)
    db.commit()
    return club


def make_coach(db, name: str, club_id: Optional[str], active: bool = True, display_order: int = 0) -> Coach:
    coach = Coach(name=name, club_id=club_id, active=active, display_order=display_order)
    db.add(coach)
    db.commit()
    return coach


def make_request(db, user_id: str, club_id: str, status: str = "pending") -> MembershipRequest:
    request = MembershipRequest(user_id=user_id, club_id=club_id, status=status)
    db.add(request)
    db.commit()
    return request


def bind_role(db, user_id: str, role: str, club_id: Optional[str] = None, expires_at=None) -> UserRole:
    role_id = db.query(Role.id).filter(Role.name == role).scalar()
    binding = UserRole(user_id=user_id, role_id=role_id, club_id=club_id, expires_at=expires_at)
    db.add(binding)
    db.commit()
    return binding


def usable_session(user_id: str, lifetime: int = 3600) -> SessionRecord:
    return SessionRecord(user_id=user_id, access_token=f"token-{user_id}", expires_at=int(time.time()) + lifetime)


class HeaderIdentityProvider(IdentityProvider):
    """Trusts the principal id carried in a test header"""

    def get_current_session(self, connection):
        user_id = connection.headers.get(TEST_USER_HEADER)
        if not user_id:
            return None, None
        return usable_session(user_id), None

    def get_current_user(self, connection):
        session, error = self.get_current_session(connection)
        if session is None:
            return None, error
        return PrincipalInfo(id=session.user_id, email=f"{session.user_id}@example.org"), None
