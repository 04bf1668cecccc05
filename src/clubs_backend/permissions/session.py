import datetime
import math
import numbers
from typing import Any, Optional

from clubs_backend.auth.providers import SessionRecord


def _expiry_as_datetime(expires_at: Any) -> Optional[datetime.datetime]:
    if isinstance(expires_at, bool):
        return None
    if isinstance(expires_at, datetime.datetime):
        if expires_at.tzinfo is None:
            return expires_at.replace(tzinfo=datetime.timezone.utc)
        return expires_at
    if isinstance(expires_at, numbers.Real):
        if not math.isfinite(expires_at):
            return None
        try:
            return datetime.datetime.fromtimestamp(expires_at, tz=datetime.timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    return None


def is_session_usable(
    session: Optional[SessionRecord],
    provider_error: Any = None,
    now: Optional[datetime.datetime] = None,
) -> bool:
    """True only for a present, error-free session with a credential and a future expiry.

    Missing or malformed fields make the session unusable.
    """
    if provider_error:
        return False
    if session is None:
        return False
    if not isinstance(session.access_token, str) or not session.access_token.strip():
        return False
    if not session.user_id:
        return False

    expires_at = _expiry_as_datetime(session.expires_at)
    if expires_at is None:
        return False

    now = now or datetime.datetime.now(datetime.timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=datetime.timezone.utc)

    return expires_at > now
