"""
Change Listener.

Bridges the Auth Service's session-change channel to the Session Store and
the Redirect Coordinator. The callback is synchronous, so each event's
mutation finishes before the next event is looked at.
"""

import logging
from typing import Optional

from ..models import Session, SessionEvent, SignedIn
from .redirects import Navigator, perform_redirect, redirect_for_session_change
from .service import AuthService, Subscription
from .store import SessionStore

logger = logging.getLogger(__name__)


class ChangeListener:
    """Registers once with the Auth Service and applies every event to the store."""

    def __init__(
        self,
        store: SessionStore,
        service: AuthService,
        navigator: Navigator,
        dashboard_url: str,
    ):
        self._store = store
        self._service = service
        self._navigator = navigator
        self._dashboard_url = dashboard_url
        self._subscription: Optional[Subscription] = None
        self._stopped = False
        self.events_processed = 0

    @property
    def subscription(self) -> Optional[Subscription]:
        return self._subscription

    def start(self) -> Subscription:
        """
        Subscribe to session changes.

        Raises:
            RuntimeError: If called twice or after ``stop()``
        """
        if self._subscription is not None or self._stopped:
            raise RuntimeError("ChangeListener can only be started once")
        self._subscription = self._service.subscribe_to_session_changes(self.handle)
        logger.info("Subscribed to session changes")
        return self._subscription

    def stop(self) -> None:
        """Release the subscription and close the store. Safe to call twice."""
        if self._stopped:
            return
        self._stopped = True
        if self._subscription is not None:
            self._subscription.unsubscribe()
        self._store.close()
        logger.info("Stopped listening for session changes")

    def handle(self, event: SessionEvent) -> None:
        """Apply one session-change event."""
        if self._stopped or self._store.closed:
            logger.debug(f"Dropping late {event.type} event")
            return

        if isinstance(event, SignedIn):
            # identity first, then redirect using the path as it is right now,
            # then leave the loading state
            was_loading = self._store.is_loading
            self._store.replace(Session(identity=event.identity, is_loading=was_loading))
            target = redirect_for_session_change(self._navigator.pathname, event, self._dashboard_url)
            redirected = perform_redirect(target, self._navigator)
            if was_loading:
                self._store.replace(Session(identity=event.identity, is_loading=False))
            logger.info(
                "Session established",
                extra={"user_id": event.identity.id, "redirected": redirected},
            )
        else:
            self._store.replace(Session(identity=None, is_loading=False))
            logger.info("No active session")

        self.events_processed += 1
