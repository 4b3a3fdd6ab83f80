"""Custom exceptions following RFC 9457 Problem Details for HTTP APIs."""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import InterfaceError, OperationalError

logger = logging.getLogger(__name__)

PROBLEM_BASE_URI = "https://elitetours.example/problems"


class ProblemDetailsException(HTTPException):
    """
    Base exception class following RFC 9457 Problem Details for HTTP APIs.

    https://tools.ietf.org/rfc/rfc9457.txt
    """

    def __init__(
        self,
        status_code: int,
        title: str,
        detail: Optional[str] = None,
        type_uri: Optional[str] = None,
        instance: Optional[str] = None,
        extensions: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        """
        Initialize Problem Details exception.

        Args:
            status_code: HTTP status code
            title: Short, human-readable summary of the problem type
            detail: Human-readable explanation specific to this occurrence
            type_uri: URI reference that identifies the problem type
            instance: URI reference that identifies the specific occurrence
            extensions: Additional problem-specific information
            headers: HTTP headers to include in response
        """
        self.status_code = status_code
        self.title = title
        self.detail = detail
        self.type_uri = type_uri or f"about:blank#{status_code}"
        self.instance = instance
        self.extensions = extensions or {}

        self.problem_details = {
            "type": self.type_uri,
            "title": self.title,
            "status": self.status_code,
        }

        if self.detail:
            self.problem_details["detail"] = self.detail

        if self.instance:
            self.problem_details["instance"] = self.instance

        self.problem_details.update(self.extensions)

        super().__init__(
            status_code=status_code,
            detail=self.problem_details,
            headers=headers
        )


class ValidationError(ProblemDetailsException):
    """Malformed or out-of-range input; lists every violation, not just the first."""

    def __init__(
        self,
        violations: Optional[List[Dict[str, str]]] = None,
        detail: str = "The request data failed validation",
        instance: Optional[str] = None,
    ):
        self.violations = violations or []
        super().__init__(
            status_code=400,
            title="Validation Error",
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/validation-error",
            instance=instance,
            extensions={"code": "VALIDATION_ERROR", "violations": self.violations},
        )

    @classmethod
    def for_field(cls, path: str, message: str) -> "ValidationError":
        return cls(violations=[{"path": path, "message": message}], detail=message)


class AuthenticationError(ProblemDetailsException):
    """Exception for missing or unverifiable identity."""

    def __init__(
        self,
        detail: str = "Authentication credentials are required",
        instance: Optional[str] = None,
    ):
        super().__init__(
            status_code=401,
            title="Authentication Required",
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/authentication-required",
            instance=instance,
            extensions={"code": "UNAUTHORIZED"},
            headers={"WWW-Authenticate": "Bearer"},
        )


class AuthorizationError(ProblemDetailsException):
    """Exception for authenticated callers lacking admin rights."""

    def __init__(
        self,
        detail: str = "Admin access required",
        instance: Optional[str] = None,
    ):
        super().__init__(
            status_code=403,
            title="Access Forbidden",
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/access-forbidden",
            instance=instance,
            extensions={"code": "FORBIDDEN"},
        )


class NotFoundError(ProblemDetailsException):
    """Exception for resource not found errors."""

    def __init__(
        self,
        resource_type: str = "resource",
        resource_id: Optional[str] = None,
        detail: Optional[str] = None,
        instance: Optional[str] = None,
    ):
        if not detail:
            detail = f"The requested {resource_type}"
            if resource_id:
                detail += f" with ID '{resource_id}'"
            detail += " could not be found"

        extensions = {
            "code": "NOT_FOUND",
            "resource_type": resource_type,
        }
        if resource_id:
            extensions["resource_id"] = resource_id

        super().__init__(
            status_code=404,
            title="Resource Not Found",
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/resource-not-found",
            instance=instance,
            extensions=extensions,
        )


class ConflictError(ProblemDetailsException):
    """Exception for resource conflict errors."""

    def __init__(
        self,
        detail: str = "The request conflicts with the current state of the resource",
        conflicting_resource: Optional[Dict[str, Any]] = None,
        instance: Optional[str] = None,
    ):
        extensions: Dict[str, Any] = {"code": "CONFLICT"}
        if conflicting_resource:
            extensions["conflicting_resource"] = conflicting_resource

        super().__init__(
            status_code=409,
            title="Resource Conflict",
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/resource-conflict",
            instance=instance,
            extensions=extensions,
        )


class StorageUnavailableError(ProblemDetailsException):
    """Exception raised when the database cannot be reached."""

    def __init__(self, detail: str = "The booking database is temporarily unavailable"):
        super().__init__(
            status_code=503,
            title="Storage Unavailable",
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/storage-unavailable",
            extensions={"code": "STORAGE_UNAVAILABLE", "retryable": True},
            headers={"Retry-After": "5"},
        )


# Business logic exceptions

class CapacityExceededError(ProblemDetailsException):
    """Exception when a group or a day cannot take the requested guests."""

    def __init__(
        self,
        requested: int,
        limit: int,
        scope: str = "group",
        remaining: Optional[int] = None,
        detail: Optional[str] = None,
    ):
        if not detail:
            if scope == "daily":
                detail = (
                    f"Only {remaining if remaining is not None else 0} spots remain on this date "
                    f"({requested} requested)"
                )
            else:
                detail = f"Group size {requested} exceeds the maximum of {limit} guests"

        extensions: Dict[str, Any] = {
            "code": "CAPACITY_EXCEEDED",
            "scope": scope,
            "requested": requested,
            "limit": limit,
            "retryable": False,
        }
        if remaining is not None:
            extensions["remaining"] = remaining

        super().__init__(
            status_code=409,
            title="Capacity Exceeded",
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/capacity-exceeded",
            extensions=extensions,
        )


class PaymentFailedError(ProblemDetailsException):
    """The provider declined the payment; carries the provider's reason."""

    def __init__(self, reason: str = "Card declined"):
        self.reason = reason
        super().__init__(
            status_code=402,
            title="Payment Failed",
            detail=reason,
            type_uri=f"{PROBLEM_BASE_URI}/payment-failed",
            extensions={"code": "PAYMENT_FAILED", "retryable": True},
        )


class PaymentGatewayError(ProblemDetailsException):
    """
    The payment provider could not be asked, or answered with an error.

    Distinct from PaymentFailedError so callers can tell "declined" from
    "couldn't ask". ``upstream_status`` and ``provider_message`` are the
    provider's own response, surfaced verbatim.
    """

    def __init__(
        self,
        provider_message: str,
        upstream_status: Optional[int] = None,
        timed_out: bool = False,
    ):
        self.provider_message = provider_message
        self.upstream_status = upstream_status
        self.timed_out = timed_out

        if upstream_status is not None:
            detail = f"Payment provider returned HTTP {upstream_status}: {provider_message}"
        else:
            detail = f"Payment provider unreachable: {provider_message}"

        super().__init__(
            status_code=504 if timed_out else 502,
            title="Payment Provider Error",
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/payment-provider-error",
            extensions={
                "code": "PAYMENT_PROVIDER_TIMEOUT" if timed_out else "PAYMENT_PROVIDER_ERROR",
                "upstream_status": upstream_status,
                "retryable": True,
            },
        )


class PaymentNotConfiguredError(ProblemDetailsException):
    """No payment provider credentials are available."""

    def __init__(self, detail: str = "Payment processing is not configured"):
        super().__init__(
            status_code=400,
            title="Payment Not Configured",
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/payment-not-configured",
            extensions={"code": "PAYMENT_NOT_CONFIGURED"},
        )


class WebhookSignatureError(ProblemDetailsException):
    """Webhook payload signature is missing or does not match."""

    def __init__(self, detail: str = "Invalid webhook signature"):
        super().__init__(
            status_code=400,
            title="Invalid Signature",
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/invalid-signature",
            extensions={"code": "INVALID_SIGNATURE"},
        )


class IdempotencyMismatchError(ProblemDetailsException):
    """Exception when idempotency key is reused with different request body."""

    def __init__(self, idempotency_key: str, method: str):
        super().__init__(
            status_code=422,
            title="Idempotency Key Mismatch",
            detail=(
                f"Idempotency key '{idempotency_key}' was already used for "
                f"'{method}' with a different request body"
            ),
            type_uri=f"{PROBLEM_BASE_URI}/idempotency-key-mismatch",
            extensions={
                "code": "IDEMPOTENCY_KEY_MISMATCH",
                "retryable": False,
                "idempotency_key": idempotency_key,
                "method": method,
            },
        )


class IdempotencyInProgressError(ProblemDetailsException):
    """A request with this idempotency key is still being processed."""

    def __init__(self, idempotency_key: str, method: str):
        super().__init__(
            status_code=409,
            title="Idempotent Request In Progress",
            detail=(
                f"A '{method}' request with idempotency key '{idempotency_key}' "
                "is still in progress; retry shortly"
            ),
            type_uri=f"{PROBLEM_BASE_URI}/idempotency-in-progress",
            extensions={
                "code": "IDEMPOTENCY_IN_PROGRESS",
                "retryable": True,
                "idempotency_key": idempotency_key,
                "method": method,
            },
        )


class InternalServerError(ProblemDetailsException):
    """Unexpected failure; ``error_id`` correlates the response with the server log."""

    def __init__(self, error_id: Optional[str] = None):
        self.error_id = error_id or str(uuid.uuid4())
        super().__init__(
            status_code=500,
            title="Internal Server Error",
            detail="An unexpected error occurred while processing the request",
            type_uri=f"{PROBLEM_BASE_URI}/internal-server-error",
            extensions={"code": "INTERNAL_ERROR", "error_id": self.error_id},
        )


def _violation_path(loc: tuple) -> str:
    parts = [str(part) for part in loc if part not in ("body", "query", "path")]
    return ".".join(parts) or "body"


async def problem_details_handler(request: Request, exc: ProblemDetailsException) -> JSONResponse:
    """
    Exception handler for Problem Details exceptions.

    Args:
        request: FastAPI request object
        exc: Problem Details exception

    Returns:
        JSONResponse: Problem Details formatted response
    """
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.problem_details,
        headers=exc.headers,
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Convert FastAPI request validation failures into a 400 problem with every violation."""
    violations = [
        {"path": _violation_path(tuple(error.get("loc", ()))), "message": error.get("msg", "Invalid value")}
        for error in exc.errors()
    ]
    problem = ValidationError(violations=violations, instance=request.url.path)

    logger.info(
        "Request validation failed",
        extra={"path": request.url.path, "violation_count": len(violations)}
    )

    return await problem_details_handler(request, problem)


async def storage_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Surface database connectivity failures as 503 without leaking driver detail."""
    logger.error(
        "Database unavailable",
        extra={"path": request.url.path, "error": str(exc)},
    )
    return await problem_details_handler(request, StorageUnavailableError())


STORAGE_EXCEPTIONS = (OperationalError, InterfaceError)


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Generic exception handler that converts unhandled exceptions to Problem Details format.

    Args:
        request: FastAPI request object
        exc: Unhandled exception

    Returns:
        JSONResponse: Problem Details formatted response
    """
    if isinstance(exc, STORAGE_EXCEPTIONS):
        return await storage_exception_handler(request, exc)

    error_id = str(uuid.uuid4())

    logger.error(
        "Unhandled exception",
        extra={"path": request.url.path, "error_id": error_id, "error": str(exc)},
        exc_info=exc,
    )

    problem_details = {
        "type": f"{PROBLEM_BASE_URI}/internal-server-error",
        "title": "Internal Server Error",
        "status": 500,
        "detail": "An unexpected error occurred while processing the request",
        "instance": request.url.path,
        "error_id": error_id,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    return JSONResponse(
        status_code=500,
        content=problem_details,
    )


def register_exception_handlers(app) -> None:
    """Attach every problem-details handler to the application."""
    app.add_exception_handler(ProblemDetailsException, problem_details_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    for exc_type in STORAGE_EXCEPTIONS:
        app.add_exception_handler(exc_type, storage_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
