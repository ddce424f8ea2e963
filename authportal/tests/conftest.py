"""
Shared fixtures for the Auth Portal test suite.

``FakeAuthService`` stands in for the external Auth Service: it records
calls, lets tests push session-change events, and can be told to fail.
"""

from typing import Callable, List, Optional

import pytest

from authportal.auth.context import AuthProvider
from authportal.auth.exceptions import CodeExchangeError
from authportal.auth.redirects import BrowserLocation
from authportal.auth.service import Subscription
from authportal.config import Settings
from authportal.models import (
    Identity,
    OAuthInitiation,
    OAuthOptions,
    OAuthProvider,
    SessionEvent,
    SignedIn,
    SignedOut,
)


class FakeAuthService:
    """In-memory Auth Service double."""

    def __init__(self, initial_event: Optional[SessionEvent] = None):
        self.initial_event = initial_event
        self.callbacks: List[Callable[[SessionEvent], None]] = []
        self.subscribe_count = 0
        self.unsubscribe_count = 0
        self.oauth_calls: List[tuple] = []
        self.oauth_error: Optional[Exception] = None
        self.sign_out_error: Optional[Exception] = None
        self.end_session_calls = 0
        self.exchanged_codes: List[str] = []

    def subscribe_to_session_changes(self, callback):
        self.subscribe_count += 1
        self.callbacks.append(callback)

        def release():
            self.unsubscribe_count += 1
            self.callbacks.remove(callback)

        if self.initial_event is not None:
            callback(self.initial_event)
        return Subscription(release)

    def emit(self, event: SessionEvent) -> None:
        for callback in list(self.callbacks):
            callback(event)

    async def begin_oauth(self, provider: OAuthProvider, options: OAuthOptions) -> OAuthInitiation:
        self.oauth_calls.append((provider, options))
        if self.oauth_error is not None:
            raise self.oauth_error
        return OAuthInitiation(
            provider=provider,
            url=f"https://project.supabase.co/auth/v1/authorize?provider={provider.value}",
        )

    async def end_session(self) -> None:
        self.end_session_calls += 1
        if self.sign_out_error is not None:
            raise self.sign_out_error
        self.emit(SignedOut())

    async def exchange_code_for_session(self, code: str) -> Identity:
        if code == "expired-code":
            raise CodeExchangeError("invalid_grant")
        self.exchanged_codes.append(code)
        identity = Identity(id="u-callback", email="callback@example.com")
        self.emit(SignedIn(identity=identity))
        return identity


@pytest.fixture
def settings():
    """Settings pointing at example hosts with a short resolution timeout"""
    return Settings(
        DASHBOARD_URL="https://app.example.com/dashboard",
        AUTH_URL="https://auth.example.com",
        AUTH_SERVICE_URL="https://project.supabase.co",
        AUTH_SERVICE_API_KEY="test-anon-key",
        SESSION_RESOLUTION_TIMEOUT_SECONDS=0.2,
        AUTH_REQUEST_TIMEOUT_SECONDS=0.1,
    )


@pytest.fixture
def identity():
    return Identity(
        id="u1",
        email="u1@example.com",
        app_metadata={"provider": "github"},
        user_metadata={"user_name": "octocat"},
    )


@pytest.fixture
def location():
    return BrowserLocation()


@pytest.fixture
def navigations(location):
    """URLs the location was sent to, in order"""
    urls: List[str] = []
    location.on_navigate(urls.append)
    return urls


@pytest.fixture
def fake_service():
    return FakeAuthService()


@pytest.fixture
def provider(fake_service, location, settings):
    return AuthProvider.from_settings(fake_service, location, settings)


@pytest.fixture
def service_factory():
    """Build extra fakes, e.g. with a preset initial event"""
    return FakeAuthService
