"""
verify.py
---------
Purpose:
    JWT verification using Supabase JWKS (ES256).

Notes:
    - Fetches JWKS from Supabase and caches keys.
    - `auth_dependency` for routes that require a signed-in user.
    - `optional_auth_dependency` for routes that also serve
      unauthenticated, device-scoped sessions.
"""

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jwt import PyJWKClient

from outreach.config import settings

SUPABASE_AUDIENCE = "authenticated"

_jwk_client = PyJWKClient(settings.jwks_url())
_security = HTTPBearer()
_optional_security = HTTPBearer(auto_error=False)


def verify_jwt(token: str) -> dict:
    try:
        signing_key = _jwk_client.get_signing_key_from_jwt(token)
        decoded = jwt.decode(
            token,
            signing_key.key,
            algorithms=["ES256"],  # Supabase now uses ES256
            audience=SUPABASE_AUDIENCE,
            options={"verify_exp": True},
        )
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid authentication token: {e}",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e

    if not decoded.get("sub"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication token has no subject",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return decoded


def auth_dependency(credentials: HTTPAuthorizationCredentials = Depends(_security)) -> dict:
    token = credentials.credentials
    return verify_jwt(token)


def optional_auth_dependency(
    credentials: HTTPAuthorizationCredentials | None = Depends(_optional_security),
) -> dict | None:
    """Claims when a bearer token is present; None for anonymous requests."""
    if credentials is None:
        return None
    return verify_jwt(credentials.credentials)
