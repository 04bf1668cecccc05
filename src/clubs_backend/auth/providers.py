"""
Identity provider interface.

The provider owns sign-in, token issuance and refresh. The authorization
core only asks it for the session attached to the current request and for
the principal behind it.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, Optional, Tuple, Union
from pydantic import BaseModel, Field
from starlette.requests import HTTPConnection


class SessionRecord(BaseModel):
    """Session as reported by the identity provider."""
    user_id: Optional[str] = Field(None, description="Owning principal id")
    access_token: Optional[str] = Field(None, description="Access credential")
    refresh_token: Optional[str] = Field(None, description="Refresh credential")
    # epoch seconds or datetime; anything else is treated as malformed
    expires_at: Optional[Union[datetime, int, float, str, bool]] = Field(None, description="Expiry")


class PrincipalInfo(BaseModel):
    """Principal as reported by the identity provider."""
    id: str = Field(..., description="Stable principal id")
    email: Optional[str] = Field(None, description="Email address")
    attributes: Dict[str, Any] = Field(default_factory=dict, description="Provider metadata")


SessionLookup = Tuple[Optional[SessionRecord], Optional[Exception]]
PrincipalLookup = Tuple[Optional[PrincipalInfo], Optional[Exception]]


class IdentityProvider(ABC):

    @abstractmethod
    def get_current_session(self, connection: HTTPConnection) -> SessionLookup:
        """Session carried by the request, and the error raised while fetching it."""
        pass

    @abstractmethod
    def get_current_user(self, connection: HTTPConnection) -> PrincipalLookup:
        """Principal carried by the request, and the error raised while fetching it."""
        pass

    def close(self):
        """Release resources held by the provider."""
        pass
