import datetime
from typing import Dict, List, Optional, Set
from pydantic import BaseModel, Field


class RoleLevels:
    """Flat role name -> privilege level table (lower level = more privileged)"""

    DEFAULT_LEVELS = {
        "developer": 0,
        "admin": 1,
        "moderator": 2,
        "coach": 2,
        "student": 3,
        "user": 4,
    }

    DESCRIPTIONS = {
        "developer": "Site developer, full access including hidden features",
        "admin": "Site administrator",
        "moderator": "Content moderator",
        "coach": "Coach of a club",
        "student": "Member of a club",
        "user": "Registered user",
    }

    def __init__(self, levels: Optional[Dict[str, int]] = None):
        self.levels = levels or self.DEFAULT_LEVELS

    def level_of(self, role: str) -> Optional[int]:
        return self.levels.get(role)


# Global instance - can be configured at startup
role_levels = RoleLevels()

ELEVATED_LEVEL = 1
ADMIN_ROLES = ("admin", "developer")


class RoleBinding(BaseModel):
    """A (role, optional club) grant held by a principal"""
    role: str
    level: int
    club_id: Optional[str] = None
    granted_at: Optional[datetime.datetime] = None
    expires_at: Optional[datetime.datetime] = None

    def is_active(self, now: datetime.datetime) -> bool:
        return self.expires_at is None or self.expires_at > now


class Principal(BaseModel):
    """Resolved principal with its active role bindings"""

    user_id: Optional[str] = None
    bindings: List[RoleBinding] = Field(default_factory=list)

    @property
    def role_names(self) -> Set[str]:
        return {binding.role for binding in self.bindings}

    @property
    def is_admin(self) -> bool:
        return any(role in self.role_names for role in ADMIN_ROLES)

    def has_role(self, role: str, club_id: Optional[str] = None) -> bool:
        for binding in self.bindings:
            if binding.role != role:
                continue
            if club_id is None or binding.club_id == club_id:
                return True
        return False

    def has_level_at_or_below(self, max_level: int) -> bool:
        return any(binding.level <= max_level for binding in self.bindings)

    def club_ids_for(self, role: str) -> List[str]:
        """Club scopes of a role, most recently granted first"""
        return [b.club_id for b in self.bindings if b.role == role and b.club_id is not None]
