"""Custom exception classes and global error handler."""
import logging
import uuid
from enum import Enum

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base application error.

    ``reason`` is for server-side diagnostics only and is never sent to the client.
    """
    def __init__(
        self,
        message: str,
        status_code: int = 500,
        detail: str | None = None,
        reason: str | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.detail = detail or message
        self.reason = reason
        self.headers: dict[str, str] = {}
        super().__init__(self.message)


class NotFoundError(AppError):
    def __init__(self, entity: str, identifier: str = ""):
        msg = f"{entity} not found" + (f": {identifier}" if identifier else "")
        super().__init__(msg, status_code=404)


class ValidationError(AppError):
    def __init__(self, message: str):
        super().__init__(message, status_code=400)


class RateLimitError(AppError):
    def __init__(self, message: str = "Too many attempts. Try again later.", reason: str | None = None):
        super().__init__(message, status_code=429, reason=reason)


class LockedOutError(AppError):
    def __init__(self, retry_after: int = 0, reason: str | None = None):
        super().__init__(
            "Account locked due to too many failed logins. Try again later.",
            status_code=423,
            reason=reason,
        )
        self.retry_after = retry_after
        if retry_after > 0:
            self.headers["Retry-After"] = str(retry_after)


class InvalidCredentialsError(AppError):
    def __init__(self, reason: str | None = None):
        super().__init__("Invalid credentials", status_code=401, reason=reason)


class AuthenticationError(AppError):
    """Bearer credential rejected. Every subclass renders the same response."""
    def __init__(self, reason: str = "missing bearer token"):
        super().__init__("Invalid or expired token", status_code=401, reason=reason)
        self.headers["WWW-Authenticate"] = "Bearer"


class TokenExpiredError(AuthenticationError):
    def __init__(self, reason: str = "token expired"):
        super().__init__(reason)


class TokenMalformedError(AuthenticationError):
    def __init__(self, reason: str = "token malformed"):
        super().__init__(reason)


class TokenTamperedError(AuthenticationError):
    def __init__(self, reason: str = "token signature invalid"):
        super().__init__(reason)


class DenialReason(str, Enum):
    WRONG_ROLE = "wrong_role"
    NOT_OWNER = "not_owner"
    WRONG_BRANCH = "wrong_branch"
    MISSING_RECORD = "missing_record"


class PolicyDeniedError(AppError):
    def __init__(self, denial: DenialReason):
        super().__init__("Forbidden", status_code=403, reason=denial.value)
        self.denial = denial


def _request_id(request: Request) -> str | None:
    return request.state.request_id if hasattr(request.state, "request_id") else None


def setup_exception_handlers(app: FastAPI):
    """Register global exception handlers."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        request_id = _request_id(request)
        if exc.reason:
            logger.warning(
                "%s on %s %s [%s]: %s",
                type(exc).__name__, request.method, request.url.path, request_id, exc.reason,
            )
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": exc.message,
                "detail": exc.detail,
                "request_id": request_id,
            },
            headers=exc.headers or None,
        )

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception):
        request_id = _request_id(request) or str(uuid.uuid4())[:8]
        logger.error("Unhandled error [%s]: %s", request_id, exc, exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal server error",
                "detail": "An unexpected error occurred",
                "request_id": request_id,
            },
        )


class RequestIdMiddleware:
    """Middleware to add request ID to every request."""

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] == "http":
            request_id = str(uuid.uuid4())[:8]

            async def send_with_request_id(message):
                if message["type"] == "http.response.start":
                    headers = list(message.get("headers", []))
                    headers.append([b"x-request-id", request_id.encode()])
                    message["headers"] = headers
                await send(message)

            scope.setdefault("state", {})["request_id"] = request_id
            await self.app(scope, receive, send_with_request_id)
        else:
            await self.app(scope, receive, send)
