from __future__ import annotations

from fastapi import Depends, HTTPException, Request, status

from ..config import Settings
from .context import AuthContext, AuthProvider
from .exceptions import SubscriptionError


def get_auth_provider(request: Request) -> AuthProvider:
    return request.app.state.auth_provider


def get_portal_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_auth_service(request: Request):
    return request.app.state.auth_service


async def require_resolved_session(provider: AuthProvider = Depends(get_auth_provider)) -> AuthContext:
    """
    Hold the request until the session state is known.

    Routes depending on this never observe ``is_loading=True``.
    """
    try:
        await provider.wait_until_resolved()
    except SubscriptionError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(e),
            headers={"Retry-After": "5"},
        )
    return provider.context
