"""
Session Store.

Holds the single ``Session`` snapshot for the provider's lifetime. Readers
get whole immutable snapshots; the Change Listener is the only writer.
"""

import asyncio
import logging
from typing import Callable, List, Optional

from ..models import Identity, Session

logger = logging.getLogger(__name__)

SessionObserver = Callable[[Session], None]


class SessionStore:
    """
    In-memory holder of ``{identity, is_loading}``.

    Starts as ``{None, True}``. After ``close()`` every write is ignored so
    events arriving after teardown cannot change what readers see.
    """

    def __init__(self):
        self._session = Session()
        self._observers: List[SessionObserver] = []
        self._resolved = asyncio.Event()
        self._closed = False

    # -------------------------------------------------------------------------
    # Readers
    # -------------------------------------------------------------------------

    @property
    def session(self) -> Session:
        return self._session

    @property
    def identity(self) -> Optional[Identity]:
        return self._session.identity

    @property
    def is_loading(self) -> bool:
        return self._session.is_loading

    @property
    def closed(self) -> bool:
        return self._closed

    def observe(self, observer: SessionObserver) -> Callable[[], None]:
        """
        Register a callback invoked with every new snapshot.

        Returns:
            Function that removes the observer
        """
        self._observers.append(observer)

        def remove() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return remove

    async def wait_resolved(self) -> Session:
        """Wait until the first session event has been processed."""
        await self._resolved.wait()
        return self._session

    # -------------------------------------------------------------------------
    # Writer (Change Listener only)
    # -------------------------------------------------------------------------

    def replace(self, session: Session) -> bool:
        """
        Atomically swap in a new snapshot.

        Once resolved the store never goes back to loading.

        Returns:
            False if the store is closed and the write was dropped
        """
        if self._closed:
            logger.debug("Ignoring session write after store was closed")
            return False

        if not self._session.is_loading and session.is_loading:
            session = Session(identity=session.identity, is_loading=False)

        self._session = session
        if not session.is_loading:
            self._resolved.set()

        for observer in list(self._observers):
            try:
                observer(session)
            except Exception as e:
                logger.error(f"Session observer failed: {e}", exc_info=True)
        return True

    def close(self) -> None:
        self._closed = True
        self._observers.clear()
