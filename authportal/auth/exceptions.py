"""
Authentication error taxonomy.

Every operation-level failure reaches the immediate caller as one of these;
none of them is retried automatically.
"""

from typing import Optional


class AuthError(Exception):
    """Base exception for session and Auth Service errors"""
    pass


class SubscriptionError(AuthError):
    """The session-change channel did not deliver an initial event in time."""

    def __init__(self, message: str = "Session state could not be resolved", timeout: Optional[float] = None):
        self.timeout = timeout
        if timeout is not None:
            message = f"{message} within {timeout:g}s"
        super().__init__(message)


class OAuthInitiationError(AuthError):
    """The Auth Service refused to start a provider handshake."""

    def __init__(self, provider: str, cause: object):
        self.provider = str(getattr(provider, "value", provider))
        self.cause = cause
        super().__init__(f"Could not start {self.provider} sign-in: {cause}")


class SignOutError(AuthError):
    """Session revocation failed; the local session was kept."""

    def __init__(self, cause: object):
        self.cause = cause
        super().__init__(f"Sign-out failed: {cause}")


class CodeExchangeError(AuthError):
    """The authorization code returned by the provider could not be redeemed."""

    def __init__(self, cause: object):
        self.cause = cause
        super().__init__(f"Authorization code exchange failed: {cause}")
