"""
GoTrue (Supabase auth) identity provider.

Sessions are read from the auth cookie written by the Supabase SSR helpers
(plain JSON or "base64-" prefixed, possibly split in ".0", ".1" chunks) or
from a bearer token. The principal is fetched from the GoTrue user endpoint.

Access tokens are verified locally (HS256, signature and expiry) when the
JWT secret is configured. Without it, every token is confirmed by the GoTrue
user endpoint before its claims are used. The session expiry always comes
from the token, never from the cookie.
"""

import base64
import binascii
import json
import logging
from typing import Any, Dict, Optional, Tuple

import httpx
from fastapi.security.utils import get_authorization_scheme_param
from jose import JWTError, jwt
from starlette.requests import HTTPConnection

from clubs_backend.api.exceptions import (
    NotAuthenticatedException,
    UpstreamUnavailableException,
    response_to_http_exception,
)
from clubs_backend.auth.providers import (
    IdentityProvider,
    PrincipalInfo,
    PrincipalLookup,
    SessionLookup,
    SessionRecord,
)
from clubs_backend.settings import BackendSettings

logger = logging.getLogger(__name__)

BASE64_PREFIX = "base64-"
MAX_COOKIE_CHUNKS = 10


class GoTrueIdentityProvider(IdentityProvider):

    def __init__(
        self,
        url: str,
        anon_key: str = "",
        jwt_secret: Optional[str] = None,
        cookie_name: str = "sb-auth-token",
        timeout: float = 5.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.url = url.rstrip("/")
        self.anon_key = anon_key
        self.jwt_secret = jwt_secret
        self.cookie_name = cookie_name
        self.client = httpx.Client(timeout=timeout, transport=transport)

    @classmethod
    def from_settings(cls, settings: BackendSettings) -> "GoTrueIdentityProvider":
        return cls(
            url=settings.GOTRUE_URL,
            anon_key=settings.GOTRUE_ANON_KEY,
            jwt_secret=settings.GOTRUE_JWT_SECRET,
            cookie_name=settings.AUTH_COOKIE_NAME,
            timeout=settings.GOTRUE_TIMEOUT,
        )

    def close(self):
        self.client.close()

    def _cookie_value(self, connection: HTTPConnection) -> Optional[str]:
        cookies = connection.cookies
        if self.cookie_name in cookies:
            return cookies[self.cookie_name]

        chunks = []
        for index in range(MAX_COOKIE_CHUNKS):
            chunk = cookies.get(f"{self.cookie_name}.{index}")
            if chunk is None:
                break
            chunks.append(chunk)
        return "".join(chunks) if chunks else None

    @staticmethod
    def decode_cookie(raw: str) -> Dict[str, Any]:
        """Decode the JSON session payload stored in the auth cookie"""
        if raw.startswith(BASE64_PREFIX):
            encoded = raw[len(BASE64_PREFIX):]
            encoded += "=" * (-len(encoded) % 4)
            raw = base64.urlsafe_b64decode(encoded).decode("utf-8")

        payload = json.loads(raw)
        if not isinstance(payload, dict):
            raise ValueError("Session cookie does not hold an object")
        return payload

    def _verified_claims(self, token: str) -> Dict[str, Any]:
        return jwt.decode(
            token,
            self.jwt_secret,
            algorithms=["HS256"],
            options={"verify_aud": False},
        )

    def _session_payload(self, connection: HTTPConnection) -> Optional[Dict[str, Any]]:
        authorization = connection.headers.get("Authorization")
        if authorization:
            scheme, param = get_authorization_scheme_param(authorization)
            if scheme.lower() == "bearer" and param:
                return {"access_token": param}

        raw = self._cookie_value(connection)
        if raw is None:
            return None
        return self.decode_cookie(raw)

    def _read_payload(self, connection: HTTPConnection) -> Tuple[Optional[Dict[str, Any]], Optional[Exception]]:
        try:
            return self._session_payload(connection), None
        except (ValueError, binascii.Error, UnicodeDecodeError) as e:
            logger.warning(f"Unreadable session cookie: {e}")
            return None, e

    @staticmethod
    def _access_token(payload: Dict[str, Any]) -> Optional[str]:
        access_token = payload.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            return None
        return access_token

    def _fetch_user(self, access_token: str) -> PrincipalLookup:
        headers = {"Authorization": f"Bearer {access_token}"}
        if self.anon_key:
            headers["apikey"] = self.anon_key

        try:
            response = self.client.get(f"{self.url}/auth/v1/user", headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"Identity provider unreachable: {e}")
            return None, UpstreamUnavailableException("Identity provider unavailable")

        if response.status_code != 200:
            logger.info(f"Identity provider refused the session: {response.status_code}")
            if response.status_code >= 500:
                return None, UpstreamUnavailableException("Identity provider unavailable")
            error = response_to_http_exception(response.status_code, response.text)
            return None, error or NotAuthenticatedException()

        try:
            data = response.json()
        except ValueError as e:
            logger.error(f"Invalid identity provider response: {e}")
            return None, UpstreamUnavailableException("Invalid identity provider response")

        if not isinstance(data, dict) or not data.get("id"):
            return None, NotAuthenticatedException("Unknown user")

        return PrincipalInfo(
            id=data["id"],
            email=data.get("email"),
            attributes=data.get("user_metadata") or {},
        ), None

    def get_current_session(self, connection: HTTPConnection) -> SessionLookup:
        payload, error = self._read_payload(connection)
        if error is not None:
            return None, error
        if payload is None:
            return None, None

        access_token = self._access_token(payload)
        if access_token is None:
            return SessionRecord(), None

        if self.jwt_secret:
            try:
                claims = self._verified_claims(access_token)
            except JWTError as e:
                logger.warning(f"Rejected access token: {e}")
                return None, e
            user_id = claims.get("sub")
        else:
            user, error = self._fetch_user(access_token)
            if error is not None or user is None:
                return None, error or NotAuthenticatedException()
            try:
                claims = jwt.get_unverified_claims(access_token)
            except JWTError as e:
                logger.warning(f"Unreadable access token: {e}")
                return None, e
            user_id = user.id

        return SessionRecord(
            user_id=user_id,
            access_token=access_token,
            refresh_token=payload.get("refresh_token"),
            expires_at=claims.get("exp"),
        ), None

    def get_current_user(self, connection: HTTPConnection) -> PrincipalLookup:
        payload, error = self._read_payload(connection)
        if error is not None:
            return None, error
        if payload is None:
            return None, None

        access_token = self._access_token(payload)
        if access_token is None:
            return None, None

        if self.jwt_secret:
            try:
                self._verified_claims(access_token)
            except JWTError as e:
                logger.warning(f"Rejected access token: {e}")
                return None, e

        return self._fetch_user(access_token)
