"""
Domain exception hierarchy and the FastAPI handlers that translate it.

Services raise these; endpoints never build HTTP errors for domain rules
themselves. Each class carries the status code and a stable error code the
frontend switches on.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import DBAPIError, OperationalError

logger = logging.getLogger(__name__)


class DomainError(Exception):
    """Base class for all errors raised by the workflow services."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "domain_error"

    def __init__(self, detail: str, **extra: Any):
        super().__init__(detail)
        self.detail = detail
        self.extra = extra

    def to_dict(self) -> Dict[str, Any]:
        body = {"detail": self.detail, "code": self.code}
        body.update({k: v for k, v in self.extra.items() if v is not None})
        return body


class ValidationError(DomainError):
    """Malformed input. Raised before any write."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "validation_error"


class AuthorizationError(DomainError):
    """Role or tier insufficient.

    ``upsell`` tells the client which path to offer instead of a bare
    failure: ``login``, ``subscribe``, ``trial`` or ``contact_staff``.
    """

    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden"

    def __init__(self, detail: str = "Insufficient permissions", upsell: Optional[str] = None):
        super().__init__(detail, upsell=upsell)
        self.upsell = upsell


class NotFoundError(DomainError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class InvalidTransitionError(DomainError):
    """A state machine refused the requested transition."""

    status_code = status.HTTP_409_CONFLICT
    code = "invalid_transition"

    def __init__(self, detail: str, current: Optional[str] = None, requested: Optional[str] = None):
        super().__init__(detail, current=current, requested=requested)
        self.current = current
        self.requested = requested


class ConflictError(DomainError):
    """Optimistic version check failed."""

    status_code = status.HTTP_409_CONFLICT
    code = "version_conflict"

    def __init__(self, detail: str, expected: Optional[int] = None, actual: Optional[int] = None):
        super().__init__(detail, expected=expected, actual=actual)
        self.expected = expected
        self.actual = actual


class UploadError(DomainError):
    """File storage refused the upload; the whole send is aborted."""

    status_code = status.HTTP_502_BAD_GATEWAY
    code = "upload_failed"


class StaleIdentityError(DomainError):
    """The session identity no longer maps to a profile."""

    status_code = status.HTTP_401_UNAUTHORIZED
    code = "stale_identity"

    def __init__(self, detail: str = "Profile no longer exists"):
        super().__init__(detail, force_sign_out=True)


class AuthenticationError(DomainError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "unauthenticated"

    def __init__(self, detail: str = "Authentication required"):
        super().__init__(detail, upsell="login")


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.url.path}: {exc.detail}")
    else:
        logger.info(f"{type(exc).__name__} on {request.url.path}: {exc.detail}")
    headers = None
    if exc.status_code == status.HTTP_401_UNAUTHORIZED:
        headers = {"WWW-Authenticate": "Bearer"}
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


async def transient_store_error_handler(request: Request, exc: DBAPIError) -> JSONResponse:
    """Store/network failures surface as a retryable notice."""
    logger.error(f"Transient store error on {request.url.path}: {type(exc).__name__}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "detail": "The service is temporarily unavailable, please try again",
            "code": "transient_error",
            "retryable": True,
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DomainError, domain_error_handler)
    app.add_exception_handler(OperationalError, transient_store_error_handler)
    app.add_exception_handler(DBAPIError, transient_store_error_handler)
