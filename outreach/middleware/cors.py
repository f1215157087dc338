"""
CORS Middleware - Cross-Origin Resource Sharing configuration.

Allowed origins:
- the explicit allow-list (local dev servers by default)
- any https origin whose host ends with the configured preview suffix
  (e.g. ".vercel.app" for preview deployments of the web client)

Usage:
    from outreach.middleware.cors import CORSMiddleware

    app.add_middleware(
        CORSMiddleware,
        allowed_origins=["http://localhost:5173"],
        allowed_origin_suffix=".vercel.app",
    )
"""

from urllib.parse import urlparse

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from outreach.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class CORSMiddleware(BaseHTTPMiddleware):
    """
    CORS (Cross-Origin Resource Sharing) middleware.

    Handles preflight OPTIONS requests and adds CORS headers to responses.
    """

    def __init__(
        self,
        app,
        allowed_origins: list[str] | None = None,
        allowed_origin_suffix: str | None = None,
        allow_credentials: bool = True,
        allow_methods: list[str] | None = None,
        allow_headers: list[str] | None = None,
        max_age: int = 600,
    ):
        super().__init__(app)
        self.allowed_origins = allowed_origins or []
        self.allowed_origin_suffix = allowed_origin_suffix
        self.allow_credentials = allow_credentials
        self.allow_methods = allow_methods or ["GET", "POST", "PUT", "DELETE", "OPTIONS"]
        self.allow_headers = allow_headers or [
            "Accept",
            "Content-Type",
            "Authorization",
            "X-Device-ID",
            "X-Request-ID",
            "X-Requested-With",
        ]
        self.max_age = max_age

        logger.info(
            "CORS middleware initialized",
            allowed_origins=self.allowed_origins,
            allowed_origin_suffix=self.allowed_origin_suffix,
            allow_credentials=self.allow_credentials,
        )

    def is_allowed_origin(self, origin: str | None) -> bool:
        if not origin:
            return False
        if origin in self.allowed_origins:
            return True
        if not self.allowed_origin_suffix:
            return False

        parsed = urlparse(origin)
        return parsed.scheme == "https" and (parsed.hostname or "").endswith(self.allowed_origin_suffix)

    async def dispatch(self, request, call_next):
        origin = request.headers.get("origin")
        is_allowed_origin = self.is_allowed_origin(origin)

        if request.method == "OPTIONS" and request.headers.get("access-control-request-method"):
            if is_allowed_origin:
                return self._preflight_response(origin)

            logger.warning("CORS preflight rejected - origin not allowed", origin=origin)
            return Response(status_code=403, content="Origin not allowed")

        response = await call_next(request)

        if is_allowed_origin:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            if self.allow_credentials:
                response.headers["Access-Control-Allow-Credentials"] = "true"
        elif origin:
            logger.warning("CORS request from disallowed origin", origin=origin, path=request.url.path)

        return response

    def _preflight_response(self, origin: str) -> Response:
        headers = {
            "Access-Control-Allow-Origin": origin,
            "Access-Control-Allow-Methods": ", ".join(self.allow_methods),
            "Access-Control-Allow-Headers": ", ".join(self.allow_headers),
            "Access-Control-Max-Age": str(self.max_age),
            "Vary": "Origin",
        }
        if self.allow_credentials:
            headers["Access-Control-Allow-Credentials"] = "true"

        return Response(status_code=204, headers=headers)
