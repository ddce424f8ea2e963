"""
Consumer interface and provider lifecycle.

``AuthProvider`` is constructed explicitly at startup and owns the store,
the change listener and the subscription. Presentation code only ever sees
the ``AuthContext`` it hands out: a read-only snapshot plus the sign-in and
sign-out operations.
"""

import asyncio
import logging
from typing import Optional

from ..config import Settings
from ..models import Identity, OAuthInitiation, OAuthOptions, OAuthProvider, Session
from .exceptions import OAuthInitiationError, SignOutError, SubscriptionError
from .listener import ChangeListener
from .redirects import Navigator, perform_redirect, redirect_after_sign_out
from .service import AuthService
from .store import SessionStore

logger = logging.getLogger(__name__)

GOOGLE_QUERY_PARAMS = {"access_type": "offline", "prompt": "consent"}
GITHUB_SCOPES = "read:user user:email"


class AuthContext:
    """
    What consumers get: ``identity``, ``is_loading`` and the three operations.

    Consumers never write to the session; it changes only when the Auth
    Service reports a new state.
    """

    def __init__(
        self,
        store: SessionStore,
        service: AuthService,
        navigator: Navigator,
        dashboard_url: str,
        auth_url: str,
    ):
        self._store = store
        self._service = service
        self._navigator = navigator
        self._dashboard_url = dashboard_url
        self._auth_url = auth_url

    @property
    def identity(self) -> Optional[Identity]:
        return self._store.identity

    @property
    def is_loading(self) -> bool:
        return self._store.is_loading

    def snapshot(self) -> Session:
        return self._store.session

    async def sign_in_with_google(self) -> OAuthInitiation:
        """Start a Google handshake requesting offline access with forced consent."""
        options = OAuthOptions(
            redirect_to=self._dashboard_url,
            query_params=dict(GOOGLE_QUERY_PARAMS),
        )
        return await self._sign_in(OAuthProvider.GOOGLE, options)

    async def sign_in_with_github(self) -> OAuthInitiation:
        """Start a GitHub handshake requesting profile and email scopes."""
        options = OAuthOptions(redirect_to=self._dashboard_url, scopes=GITHUB_SCOPES)
        return await self._sign_in(OAuthProvider.GITHUB, options)

    async def _sign_in(self, provider: OAuthProvider, options: OAuthOptions) -> OAuthInitiation:
        try:
            initiation = await self._service.begin_oauth(provider, options)
        except OAuthInitiationError as e:
            logger.error(f"Error signing in with {provider.value}: {e}")
            raise
        except Exception as e:
            logger.error(f"Error signing in with {provider.value}: {e}")
            raise OAuthInitiationError(provider, e) from e

        logger.info("OAuth handshake initiated", extra={"provider": provider.value})
        return initiation

    async def sign_out(self) -> str:
        """
        Revoke the session and go to the login page.

        Returns:
            URL the browser was sent to

        Raises:
            SignOutError: If revocation failed; nothing is navigated
        """
        try:
            await self._service.end_session()
        except SignOutError as e:
            logger.error(f"Error signing out: {e}")
            raise
        except Exception as e:
            logger.error(f"Error signing out: {e}")
            raise SignOutError(e) from e

        target = redirect_after_sign_out(self._auth_url)
        perform_redirect(target, self._navigator)
        return target.url


class AuthProvider:
    """
    Owns the session core for one application lifetime.

    Usage:
        async with AuthProvider.from_settings(service, location, settings) as provider:
            auth = provider.context
            await provider.wait_until_resolved()
    """

    def __init__(
        self,
        service: AuthService,
        navigator: Navigator,
        dashboard_url: str,
        auth_url: str,
        resolution_timeout: float = 10.0,
    ):
        self.store = SessionStore()
        self.resolution_timeout = resolution_timeout
        self._listener = ChangeListener(self.store, service, navigator, dashboard_url)
        self.context = AuthContext(self.store, service, navigator, dashboard_url, auth_url)
        self._watchdog: Optional[asyncio.Task] = None

    @classmethod
    def from_settings(cls, service: AuthService, navigator: Navigator, settings: Settings) -> "AuthProvider":
        return cls(
            service,
            navigator,
            dashboard_url=settings.dashboard_url,
            auth_url=settings.auth_url,
            resolution_timeout=settings.SESSION_RESOLUTION_TIMEOUT_SECONDS,
        )

    @property
    def listener(self) -> ChangeListener:
        return self._listener

    def start(self) -> None:
        """Subscribe to session changes and arm the resolution watchdog."""
        self._listener.start()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._watchdog = loop.create_task(self._watch_resolution())

    async def close(self) -> None:
        """Release the subscription. Events arriving afterwards are ignored."""
        if self._watchdog is not None:
            self._watchdog.cancel()
            try:
                await self._watchdog
            except asyncio.CancelledError:
                pass
            self._watchdog = None
        self._listener.stop()

    async def __aenter__(self) -> "AuthProvider":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def wait_until_resolved(self, timeout: Optional[float] = None) -> Session:
        """
        Wait for the first session event.

        The store itself stays loading if nothing arrives; only this wait
        gives up.

        Raises:
            SubscriptionError: If no event arrived within ``timeout``
        """
        if not self.store.is_loading:
            return self.store.session
        timeout = self.resolution_timeout if timeout is None else timeout
        try:
            return await asyncio.wait_for(self.store.wait_resolved(), timeout)
        except asyncio.TimeoutError:
            raise SubscriptionError(timeout=timeout) from None

    async def _watch_resolution(self) -> None:
        try:
            await asyncio.wait_for(self.store.wait_resolved(), self.resolution_timeout)
        except asyncio.TimeoutError:
            logger.error(
                "No session event received from the Auth Service; session state unknown",
                extra={"timeout_seconds": self.resolution_timeout},
            )
