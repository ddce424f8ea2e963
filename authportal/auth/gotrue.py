"""
GoTrue Auth Service client.

Implements the ``AuthService`` interface against a GoTrue-compatible REST
API (the auth component of Supabase) using httpx.

Endpoints used (relative to ``{AUTH_SERVICE_URL}/auth/v1``):
- GET  /settings                 : which external providers are enabled
- GET  /authorize                : provider handshake entry (browser navigation)
- POST /token?grant_type=pkce    : redeem the authorization code
- GET  /user                     : confirm a stored session
- POST /logout                   : revoke the session
"""

import asyncio
import logging
from typing import Dict, List, Optional, Set
from urllib.parse import urlencode

import httpx

from ..config import Settings
from ..models import (
    Identity,
    OAuthInitiation,
    OAuthOptions,
    OAuthProvider,
    SessionEvent,
    SignedIn,
    SignedOut,
    TokenSet,
)
from .exceptions import CodeExchangeError, OAuthInitiationError, SignOutError
from .redirects import Navigator
from .service import SessionChangeCallback, Subscription
from .utils import (
    generate_code_challenge,
    generate_code_verifier,
    identity_from_user,
    is_token_set_expired,
    token_set_from_response,
)

logger = logging.getLogger(__name__)

# Logout responses meaning the session is already gone server-side.
_ALREADY_REVOKED = (401, 403, 404)


class GoTrueAuthService:
    """
    HTTP client for the external Auth Service.

    Session-change notifications are delivered synchronously, one listener
    after the other, on the event loop that performed the state change.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        navigator: Navigator,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
        stored_session: Optional[TokenSet] = None,
    ):
        self._auth_base = f"{base_url.rstrip('/')}/auth/v1"
        self._api_key = api_key
        self._navigator = navigator
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None
        self._tokens = stored_session
        self._code_verifier: Optional[str] = None
        self._listeners: List[SessionChangeCallback] = []
        self._pending: Set[asyncio.Task] = set()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        navigator: Navigator,
        client: Optional[httpx.AsyncClient] = None,
        stored_session: Optional[TokenSet] = None,
    ) -> "GoTrueAuthService":
        return cls(
            base_url=settings.auth_service_url,
            api_key=settings.AUTH_SERVICE_API_KEY,
            navigator=navigator,
            client=client,
            timeout=settings.AUTH_REQUEST_TIMEOUT_SECONDS,
            stored_session=stored_session,
        )

    @property
    def current_session(self) -> Optional[TokenSet]:
        return self._tokens

    def _headers(self, access_token: Optional[str] = None) -> Dict[str, str]:
        headers = {"apikey": self._api_key}
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        return headers

    # =========================================================================
    # Session-change channel
    # =========================================================================

    def subscribe_to_session_changes(self, callback: SessionChangeCallback) -> Subscription:
        """
        Register ``callback`` and schedule delivery of the initial session.

        Must be called from a running event loop.
        """
        self._listeners.append(callback)
        task = asyncio.get_running_loop().create_task(self._emit_initial_session(callback))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

        def release() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)
            if not task.done():
                task.cancel()

        return Subscription(release)

    async def _emit_initial_session(self, callback: SessionChangeCallback) -> None:
        event = await self._resolve_initial_event()
        if event is None:
            return
        if callback in self._listeners:
            self._deliver(callback, event)

    async def _resolve_initial_event(self) -> Optional[SessionEvent]:
        tokens = self._tokens
        if tokens is None:
            return SignedOut()

        if is_token_set_expired(tokens):
            logger.info("Stored session has expired")
            self._tokens = None
            return SignedOut()

        try:
            identity = await self.get_user(tokens.access_token)
        except httpx.HTTPStatusError as e:
            if self._tokens is not tokens:
                return None
            if e.response.status_code in (401, 403):
                logger.info("Stored session was rejected by the Auth Service")
                self._tokens = None
                return SignedOut()
            logger.error(f"Could not confirm stored session: {e}")
            return None
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Could not confirm stored session: {e}")
            return None

        # sign-out or code exchange while /user was in flight
        if self._tokens is not tokens:
            logger.debug("Session changed during confirmation; dropping stale result")
            return None

        self._tokens = tokens.model_copy(update={"user": identity})
        return SignedIn(identity=identity)

    def _notify(self, event: SessionEvent) -> None:
        for callback in list(self._listeners):
            self._deliver(callback, event)

    def _deliver(self, callback: SessionChangeCallback, event: SessionEvent) -> None:
        try:
            callback(event)
        except Exception as e:
            # Listener errors stay isolated from other listeners.
            logger.error(f"Session-change listener failed on {event.type}: {e}", exc_info=True)

    # =========================================================================
    # Auth Service operations
    # =========================================================================

    async def get_user(self, access_token: str) -> Identity:
        """
        Fetch the user behind ``access_token``.

        Raises:
            httpx.HTTPError: If the request fails or is rejected
            ValueError: If the response is not a user object
        """
        response = await self._client.get(
            f"{self._auth_base}/user",
            headers=self._headers(access_token),
        )
        response.raise_for_status()
        return identity_from_user(response.json())

    async def begin_oauth(self, provider: OAuthProvider, options: OAuthOptions) -> OAuthInitiation:
        """
        Start the provider handshake by sending the browser to ``/authorize``.

        Raises:
            OAuthInitiationError: If the Auth Service is unreachable or the
                                  provider is not enabled
        """
        try:
            response = await self._client.get(f"{self._auth_base}/settings", headers=self._headers())
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise OAuthInitiationError(provider, e) from e

        external = data.get("external") if isinstance(data, dict) else None
        if not isinstance(external, dict) or not external.get(provider.value):
            raise OAuthInitiationError(provider, "provider is not enabled on the Auth Service")

        verifier = generate_code_verifier()
        params = {
            "provider": provider.value,
            "redirect_to": options.redirect_to,
        }
        if options.scopes:
            params["scopes"] = options.scopes
        params.update(options.query_params)
        params["code_challenge"] = generate_code_challenge(verifier)
        params["code_challenge_method"] = "s256"

        url = f"{self._auth_base}/authorize?{urlencode(params)}"
        self._code_verifier = verifier
        self._navigator.navigate(url)

        return OAuthInitiation(provider=provider, url=url)

    async def exchange_code_for_session(self, code: str) -> Identity:
        """
        Redeem the authorization code from the provider redirect.

        Emits ``SignedIn`` on success.

        Raises:
            CodeExchangeError: If no handshake is pending or the exchange fails
        """
        verifier = self._code_verifier
        if not verifier:
            raise CodeExchangeError("no OAuth handshake in progress")

        try:
            response = await self._client.post(
                f"{self._auth_base}/token",
                params={"grant_type": "pkce"},
                json={"auth_code": code, "code_verifier": verifier},
                headers=self._headers(),
            )
            response.raise_for_status()
            tokens = token_set_from_response(response.json())
        except (httpx.HTTPError, ValueError) as e:
            raise CodeExchangeError(e) from e

        self._code_verifier = None
        self._tokens = tokens
        self._notify(SignedIn(identity=tokens.user))
        return tokens.user

    async def end_session(self) -> None:
        """
        Revoke the session server-side, then clear it locally.

        Emits ``SignedOut`` on success.

        Raises:
            SignOutError: If revocation failed; the local session is kept
        """
        tokens = self._tokens
        if tokens is not None:
            try:
                response = await self._client.post(
                    f"{self._auth_base}/logout",
                    headers=self._headers(tokens.access_token),
                )
                if response.status_code not in _ALREADY_REVOKED:
                    response.raise_for_status()
            except httpx.HTTPError as e:
                raise SignOutError(e) from e

        self._tokens = None
        self._code_verifier = None
        self._notify(SignedOut())

    async def aclose(self) -> None:
        for task in list(self._pending):
            task.cancel()
        if self._owns_client:
            await self._client.aclose()
