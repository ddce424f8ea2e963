"""
Realtime Package

WebSocket channel between the portal and its browser pages.

Modules:
- ws: Connection manager, /realtime/ws endpoint and /realtime/status

The realtime package enables:
- Pushing session snapshots to pages as soon as the session resolves or changes
- Delivering navigation commands (the server-side ``window.location.href``)
- Receiving the page's current path for redirect decisions
"""

from .ws import ConnectionManager, realtime_router

__all__ = [
    "ConnectionManager",
    "realtime_router",
]
