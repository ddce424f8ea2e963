"""
Authentication Package

This package holds the client-side session core of the portal and its HTTP
surface. Identity verification itself is delegated to an external Auth
Service (GoTrue/Supabase) reached through an opaque client interface.

Key responsibilities:
- Single source of truth for "is a user signed in" (SessionStore)
- Applying Auth Service session-change events in arrival order (ChangeListener)
- Post-authentication navigation (redirects)
- Google / GitHub sign-in and sign-out operations (AuthContext)
- Provider lifecycle: subscribe at startup, release at shutdown (AuthProvider)

Modules:
- store: Session snapshot holder
- listener: Session-change subscriber
- redirects: Redirect target computation and navigation
- context: Consumer interface and provider lifecycle
- service: Auth Service interface and subscription handle
- gotrue: httpx implementation of the Auth Service interface
- routes: /auth endpoints

The sign-in flow:
1. Page calls POST /auth/signin/{provider}
2. The Auth Service sends the browser to the provider
3. The provider redirects back; the code is redeemed at /auth/callback
4. The Auth Service emits SignedIn; the store updates and the browser is
   sent to the dashboard if it sits on an auth entry page
"""

from .context import AuthContext, AuthProvider
from .exceptions import (
    AuthError,
    CodeExchangeError,
    OAuthInitiationError,
    SignOutError,
    SubscriptionError,
)
from .routes import auth_router

__all__ = [
    "AuthContext",
    "AuthProvider",
    "AuthError",
    "CodeExchangeError",
    "OAuthInitiationError",
    "SignOutError",
    "SubscriptionError",
    "auth_router",
]
