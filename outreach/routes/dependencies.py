"""
Request-scoped dependencies that pick the session's store.

Signed-in requests (bearer token) use the remote store for the token
subject. Anonymous requests must name their device with X-Device-ID and
use that device's local cache.
"""

from fastapi import Depends, Header, HTTPException, status

from outreach.auth.verify import auth_dependency, optional_auth_dependency
from outreach.services.local_cache import LocalCache
from outreach.services.stores import LocalCacheStore, OutreachStore, RemoteStore

MAX_DEVICE_ID_LENGTH = 128


def _device_cache(device_id: str | None) -> LocalCache:
    device_id = (device_id or "").strip()
    if not device_id or len(device_id) > MAX_DEVICE_ID_LENGTH or ":" in device_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-Device-ID header is required for unauthenticated requests",
        )
    return LocalCache(device_id)


def get_store(
    claims: dict | None = Depends(optional_auth_dependency),
    x_device_id: str | None = Header(default=None),
) -> OutreachStore:
    if claims:
        return RemoteStore(claims["sub"])
    return LocalCacheStore(_device_cache(x_device_id))


def get_user_id(claims: dict = Depends(auth_dependency)) -> str:
    return claims["sub"]


def get_device_cache(x_device_id: str | None = Header(default=None)) -> LocalCache:
    return _device_cache(x_device_id)
