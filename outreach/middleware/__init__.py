"""
Middleware components for request processing.

- Request context (request ID, IP address, user agent, request logging)
- CORS (allow-list plus preview-deployment suffix)
"""

from outreach.middleware.cors import CORSMiddleware
from outreach.middleware.request_context import RequestContextMiddleware

__all__ = [
    "RequestContextMiddleware",
    "CORSMiddleware",
]
