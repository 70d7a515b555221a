"""Shared FastAPI dependencies."""

from typing import Awaitable, Callable

from fastapi import Request

from nurushop.core.config import get_settings
from nurushop.core.exceptions import TooManyRequestsError, UnauthorizedError
from nurushop.services.admins import AdminIdentity, require_senior, resolve_admin, token_from_request
from nurushop.services.rate_limit import get_client_key, get_rate_limiter


async def get_optional_admin(request: Request) -> AdminIdentity | None:
    token = token_from_request(request.headers.get("authorization"), request.cookies)
    return await resolve_admin(token)


async def get_current_admin(request: Request) -> AdminIdentity:
    """Dependency: resolve the admin session from bearer token or cookie."""
    admin = await get_optional_admin(request)
    if admin is None:
        raise UnauthorizedError("Unauthorized")
    return admin


async def require_senior_admin(request: Request) -> AdminIdentity:
    """Dependency: require a senior admin."""
    return require_senior(await get_optional_admin(request))


def rate_limited(prefix: str) -> Callable[[Request], Awaitable[None]]:
    """Dependency factory: fixed-window limit read from settings as {prefix}_rate_limit / {prefix}_rate_window_seconds."""

    async def _check(request: Request) -> None:
        settings = get_settings()
        limit = getattr(settings, f"{prefix}_rate_limit")
        window = getattr(settings, f"{prefix}_rate_window_seconds")
        result = await get_rate_limiter().check(get_client_key(request), limit, window, prefix=prefix)
        if not result.ok:
            raise TooManyRequestsError(retry_after=result.reset_in)

    return _check
