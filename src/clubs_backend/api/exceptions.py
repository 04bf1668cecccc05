from fastapi import HTTPException, status
from typing import Any, Dict, Optional

class NotAuthenticatedException(HTTPException):
    def __init__(self,detail: Any = None, headers: Optional[Dict[str, str]] = None):
        self.headers = headers
        self.status_code = status.HTTP_401_UNAUTHORIZED
        self.detail = detail or "Not authenticated"

class ForbiddenException(HTTPException):
    def __init__(self,detail: Any = None, headers: Optional[Dict[str, str]] = None):
        self.headers = headers
        self.status_code = status.HTTP_403_FORBIDDEN
        self.detail = detail or "Forbidden"

class NotFoundException(HTTPException):
    def __init__(self,detail: Any = None, headers: Optional[Dict[str, str]] = None):
        self.headers = headers
        self.status_code = status.HTTP_404_NOT_FOUND
        self.detail = detail or "Not found"

class BadRequestException(HTTPException):
    def __init__(self,detail: Any = None, headers: Optional[Dict[str, str]] = None):
        self.headers = headers
        self.status_code = status.HTTP_400_BAD_REQUEST
        self.detail = detail or "Bad request"

class ConflictException(HTTPException):
    def __init__(self,detail: Any = None, headers: Optional[Dict[str, str]] = None):
        self.headers = headers
        self.status_code = status.HTTP_409_CONFLICT
        self.detail = detail or "Conflict"

class AlreadyReviewedException(ConflictException):
    def __init__(self,detail: Any = None, headers: Optional[Dict[str, str]] = None):
        super().__init__(detail or "already reviewed", headers)

class UpstreamUnavailableException(HTTPException):
    def __init__(self,detail: Any = None, headers: Optional[Dict[str, str]] = None):
        self.headers = headers
        self.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        self.detail = detail or "Upstream service unavailable"

def response_to_http_exception(status_code: int, details: Any):
    if status_code == status.HTTP_401_UNAUTHORIZED:
        return NotAuthenticatedException(detail=details)
    elif status_code == status.HTTP_403_FORBIDDEN:
        return ForbiddenException(detail=details)
    elif status_code == status.HTTP_404_NOT_FOUND:
        return NotFoundException(detail=details)
    elif status_code == status.HTTP_400_BAD_REQUEST:
        return BadRequestException(detail=details)
    elif status_code == status.HTTP_409_CONFLICT:
        return ConflictException(detail=details)
    elif status_code == status.HTTP_503_SERVICE_UNAVAILABLE:
        return UpstreamUnavailableException(detail=details)
    else:
        return None
