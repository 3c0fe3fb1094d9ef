"""
Domain errors raised by the service layer.
Routers translate them into HTTP responses with to_http_exception().
"""
from typing import Any, Optional
from fastapi import HTTPException, status


class ServiceError(Exception):
    """Base class for domain errors. `detail` may be a string or a dict body."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, detail: Any = None):
        self.detail = detail if detail is not None else self.__class__.__name__
        super().__init__(detail if isinstance(detail, str) else str(detail))


class ValidationError(ServiceError):
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND


class ForbiddenError(ServiceError):
    status_code = status.HTTP_403_FORBIDDEN


class ConflictError(ServiceError):
    status_code = status.HTTP_409_CONFLICT


class GoneError(ServiceError):
    status_code = status.HTTP_410_GONE


class UpstreamError(ServiceError):
    """A third-party API (LLM, flights, products) failed."""

    status_code = status.HTTP_502_BAD_GATEWAY


def to_http_exception(error: ServiceError, headers: Optional[dict] = None) -> HTTPException:
    return HTTPException(status_code=error.status_code, detail=error.detail, headers=headers)
