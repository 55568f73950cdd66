"""Audit log middleware."""
import logging
import time

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger("access_gateway.audit")

LOGIN_PATHS = {"/api/auth/login", "/api/auth/request-password-reset", "/api/auth/reset-password"}


class AuditLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000

        path = request.url.path
        ip = request.client.host if request.client else None

        # Log every auth attempt, success or failure
        if path in LOGIN_PATHS and request.method == "POST":
            outcome = "success" if response.status_code < 400 else "failure"
            logger.info(
                "auth %s %s status=%d ip=%s %.1fms",
                path.rsplit("/", 1)[-1], outcome, response.status_code, ip, elapsed_ms,
            )
        elif response.status_code in (401, 403):
            logger.info("rejected %s %s status=%d ip=%s", request.method, path, response.status_code, ip)

        return response
