"""
Redirect coordination.

Target computation is a pure function of the current path and the new
session fact; performing the navigation is a separate effect delegated to a
``Navigator``.
"""

import logging
from typing import Callable, List, Optional, Protocol

from ..models import RedirectKind, RedirectTarget, SessionEvent, SignedIn

logger = logging.getLogger(__name__)

# Pages that make no sense for a signed-in user.
AUTH_ENTRY_PATHS = frozenset({"/", "/login", "/signup"})


# =============================================================================
# Target Computation
# =============================================================================

def redirect_for_session_change(
    current_path: str,
    event: SessionEvent,
    dashboard_url: str,
) -> Optional[RedirectTarget]:
    """
    Decide where to send the browser after a session-change event.

    Only an established session on an auth entry page leads anywhere;
    deep-linked pages and sign-out notifications stay put.

    Args:
        current_path: Path the browser is currently showing
        event: The session-change event being processed
        dashboard_url: Post-login destination

    Returns:
        Dashboard target, or None when no navigation is needed
    """
    if not isinstance(event, SignedIn):
        return None
    if current_path not in AUTH_ENTRY_PATHS:
        return None
    return RedirectTarget(kind=RedirectKind.DASHBOARD, url=dashboard_url)


def redirect_after_sign_out(auth_url: str) -> RedirectTarget:
    """Sign-out always lands on the login page."""
    return RedirectTarget(kind=RedirectKind.AUTH, url=f"{auth_url.rstrip('/')}/login")


# =============================================================================
# Navigation Effect
# =============================================================================

class Navigator(Protocol):
    """Anything that can send the user to another URL."""

    @property
    def pathname(self) -> str:
        ...

    def navigate(self, url: str) -> None:
        ...


NavigationCallback = Callable[[str], None]


class BrowserLocation:
    """
    Server-side mirror of the browser's location.

    The page reports its path over the realtime channel; navigation requests
    are recorded and handed to registered callbacks (the realtime manager
    turns them into ``navigate`` messages for the page).
    """

    def __init__(self, pathname: str = "/"):
        self.pathname = pathname
        self.href: Optional[str] = None
        self._callbacks: List[NavigationCallback] = []

    def on_navigate(self, callback: NavigationCallback) -> Callable[[], None]:
        self._callbacks.append(callback)

        def remove() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return remove

    def navigate(self, url: str) -> None:
        self.href = url
        logger.info("Navigating", extra={"from_path": self.pathname, "url": url})
        for callback in list(self._callbacks):
            try:
                callback(url)
            except Exception as e:
                logger.error(f"Navigation callback failed: {e}", exc_info=True)


def perform_redirect(target: Optional[RedirectTarget], navigator: Navigator) -> bool:
    """
    Navigate to ``target`` if there is one.

    Returns:
        True if a navigation was performed
    """
    if target is None:
        return False
    logger.debug(f"Redirecting to {target.kind.value} destination")
    navigator.navigate(target.url)
    return True
