from .base import Base, metadata
from .auth import User, Profile
from .club import Club, Coach, MembershipRequest, MEMBERSHIP_STATUSES
from .role import Role, UserRole
from .site import SiteSetting

# Import all models to ensure relationships are properly set up
from . import auth, club, role, site

__all__ = [
    'Base',
    'metadata',
    # Auth models
    'User',
    'Profile',
    # Club models
    'Club',
    'Coach',
    'MembershipRequest',
    'MEMBERSHIP_STATUSES',
    # Role models
    'Role',
    'UserRole',
    # Site settings
    'SiteSetting',
]
