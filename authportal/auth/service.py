"""
Auth Service interface.

The session core only talks to the identity backend through this opaque
interface. ``GoTrueAuthService`` in ``authportal.auth.gotrue`` is the HTTP
implementation; tests substitute in-memory fakes.
"""

import logging
from typing import Callable, Optional, Protocol

from ..models import OAuthInitiation, OAuthOptions, OAuthProvider, SessionEvent

logger = logging.getLogger(__name__)

SessionChangeCallback = Callable[[SessionEvent], None]


class Subscription:
    """
    Handle for a live registration with the session-change channel.

    ``unsubscribe`` releases the registration exactly once; later calls
    are no-ops.
    """

    def __init__(self, release: Callable[[], None], name: Optional[str] = None):
        self._release = release
        self._active = True
        self.name = name or "session-changes"

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        if not self._active:
            return
        self._active = False
        self._release()
        logger.debug(f"Released subscription {self.name}")


class AuthService(Protocol):
    """Operations the session core needs from the external Auth Service."""

    def subscribe_to_session_changes(self, callback: SessionChangeCallback) -> Subscription:
        """
        Register for session-change notifications.

        The callback is invoked zero or more times, never concurrently, with
        ``SignedIn`` or ``SignedOut``.
        """
        ...

    async def begin_oauth(self, provider: OAuthProvider, options: OAuthOptions) -> OAuthInitiation:
        """
        Start an OAuth handshake with ``provider``.

        Returns once the handshake has been initiated; the resulting session
        arrives later through the session-change channel.

        Raises:
            OAuthInitiationError: If the handshake could not be started
        """
        ...

    async def end_session(self) -> None:
        """
        Revoke the current session server-side and clear it locally.

        Raises:
            SignOutError: If revocation failed
        """
        ...
