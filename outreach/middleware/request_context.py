"""
RequestContext Middleware - Adds request tracking to all requests.

Adds to request.state:
- request_id: Unique ID for request tracing (honours an incoming X-Request-ID)
- ip_address: Client IP address
- user_agent: Client user agent string

The request id is also bound into structlog contextvars so every log
line emitted while handling the request carries it.
"""

import time
import uuid

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from outreach.config import settings
from outreach.infrastructure.observability.logging import log_request


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Add request context to all incoming requests.

    Also adds X-Request-ID header to responses for client-side tracing.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = request_id
        request.state.ip_address = self._extract_client_ip(request)
        request.state.user_agent = request.headers.get("user-agent")

        structlog.contextvars.bind_contextvars(request_id=request_id)
        start = time.perf_counter()
        try:
            response = await call_next(request)
            log_request(
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round((time.perf_counter() - start) * 1000, 2),
            )
        finally:
            structlog.contextvars.unbind_contextvars("request_id")

        response.headers["X-Request-ID"] = request_id
        return response

    def _extract_client_ip(self, request: Request) -> str | None:
        """
        Extract client IP address with proxy spoofing protection.

        Only trusts X-Forwarded-For header if TRUST_X_FORWARDED_FOR is
        enabled and the request comes from a trusted proxy IP.
        """
        direct_ip = request.client.host if request.client else None
        if not settings.TRUST_X_FORWARDED_FOR or direct_ip not in settings.TRUSTED_PROXY_IPS:
            return direct_ip

        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            # "client, proxy1, proxy2" - first entry is the original client
            return forwarded_for.split(",")[0].strip()
        return direct_ip
