"""
Authentication routes for the portal's sign-in pages.

These endpoints expose the consumer interface over HTTP: the session
snapshot, the provider sign-in operations, sign-out, and the OAuth return
leg that redeems the authorization code.
"""

import logging
from typing import Any, Dict, Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import RedirectResponse

from ..config import Settings
from ..models import SignInResponse, SignOutResponse
from .context import AuthContext
from .deps import get_auth_service, get_portal_settings, require_resolved_session
from .exceptions import CodeExchangeError, OAuthInitiationError, SignOutError

logger = logging.getLogger(__name__)


# =============================================================================
# Router Setup
# =============================================================================

auth_router = APIRouter(
    prefix="/auth",
    tags=["authentication"],
)


# =============================================================================
# Session Snapshot
# =============================================================================

@auth_router.get("/session")
async def read_session(auth: AuthContext = Depends(require_resolved_session)) -> Dict[str, Any]:
    """
    Return the current session as ``{identity, isLoading}``.

    Waits for the first session event; 503 if it does not arrive in time.
    """
    return auth.snapshot().model_dump(mode="json", by_alias=True)


# =============================================================================
# Sign-in / Sign-out
# =============================================================================

@auth_router.post(
    "/signin/{provider}",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=SignInResponse,
)
async def sign_in(provider: str, auth: AuthContext = Depends(require_resolved_session)):
    """
    Start an OAuth handshake with ``google`` or ``github``.

    202 means the handshake was initiated; the session itself arrives later
    through the session-change channel.
    """
    operations = {
        "google": auth.sign_in_with_google,
        "github": auth.sign_in_with_github,
    }
    operation = operations.get(provider.lower())
    if operation is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown provider: {provider}",
        )

    try:
        initiation = await operation()
    except OAuthInitiationError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={
                "error": "oauth_initiation_failed",
                "provider": e.provider,
                "message": str(e),
            },
        )

    return SignInResponse(provider=initiation.provider, url=initiation.url)


@auth_router.post("/signout", response_model=SignOutResponse)
async def sign_out(auth: AuthContext = Depends(require_resolved_session)):
    """Revoke the session; on failure the current session stays displayed."""
    try:
        redirect = await auth.sign_out()
    except SignOutError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={
                "error": "sign_out_failed",
                "message": str(e),
            },
        )

    return SignOutResponse(redirect=redirect)


# =============================================================================
# OAuth Return Leg
# =============================================================================

@auth_router.get("/callback", response_class=RedirectResponse)
async def callback(
    code: Optional[str] = Query(None, description="Authorization code from the Auth Service"),
    error: Optional[str] = Query(None, description="Error code if the handshake failed"),
    error_description: Optional[str] = Query(None, description="Error description"),
    settings: Settings = Depends(get_portal_settings),
    service=Depends(get_auth_service),
):
    """
    Redeem the authorization code and continue to the dashboard.

    Sign-in sends ``redirect_to=DASHBOARD_URL``, so the Auth Service returns
    the browser to the dashboard, not here. This route is reached only when
    the dashboard forwards the ``code`` (or ``error``) query parameters to
    ``/auth/callback`` on the portal.

    Failures go back to the login page with an ``error`` query parameter
    for the form to display.
    """
    if error:
        logger.warning("OAuth provider returned an error", extra={"oauth_error": error})
        return _login_redirect(settings, error_description or error)

    if not code:
        return _login_redirect(settings, "Missing authorization code")

    try:
        await service.exchange_code_for_session(code)
    except CodeExchangeError as e:
        logger.warning(f"Authorization code exchange failed: {e}")
        return _login_redirect(settings, str(e))

    return RedirectResponse(url=settings.dashboard_url, status_code=status.HTTP_302_FOUND)


def _login_redirect(settings: Settings, message: str) -> RedirectResponse:
    url = f"{settings.login_url}?{urlencode({'error': message})}"
    return RedirectResponse(url=url, status_code=status.HTTP_302_FOUND)
