"""
Unit Tests for the Consumer Interface and Provider Lifecycle
============================================================

Tests for authportal/auth/context.py

Test Coverage:
--------------
1. Sign-in passes provider-specific options and the dashboard redirect
2. Sign-in failures surface to the caller and leave the session untouched
3. Sign-out navigates to the login page on success only
4. Provider resolution timeout policy
"""

import asyncio
import logging

import httpx
import pytest

from authportal.auth.exceptions import OAuthInitiationError, SignOutError, SubscriptionError
from authportal.models import Identity, OAuthProvider, SignedIn, SignedOut


# ============================================================================
# Sign-in
# ============================================================================

@pytest.mark.asyncio
async def test_google_sign_in_requests_offline_access(provider, fake_service, settings):
    async with provider:
        initiation = await provider.context.sign_in_with_google()

    assert initiation.provider == OAuthProvider.GOOGLE
    called_provider, options = fake_service.oauth_calls[0]
    assert called_provider == OAuthProvider.GOOGLE
    assert options.redirect_to == settings.dashboard_url
    assert options.query_params == {"access_type": "offline", "prompt": "consent"}
    assert options.scopes is None


@pytest.mark.asyncio
async def test_github_sign_in_requests_email_scope(provider, fake_service, settings):
    async with provider:
        initiation = await provider.context.sign_in_with_github()

    assert initiation.provider == OAuthProvider.GITHUB
    called_provider, options = fake_service.oauth_calls[0]
    assert called_provider == OAuthProvider.GITHUB
    assert options.redirect_to == settings.dashboard_url
    assert options.scopes == "read:user user:email"
    assert options.query_params == {}


@pytest.mark.asyncio
async def test_sign_in_network_error_surfaces_and_leaves_session(provider, fake_service, navigations, caplog):
    fake_service.oauth_error = OAuthInitiationError(OAuthProvider.GOOGLE, httpx.ConnectError("network down"))

    async with provider:
        fake_service.emit(SignedOut())
        before = provider.store.session

        with caplog.at_level(logging.ERROR):
            with pytest.raises(OAuthInitiationError) as exc_info:
                await provider.context.sign_in_with_google()

        assert provider.store.session == before

    assert exc_info.value.provider == "google"
    assert isinstance(exc_info.value.cause, httpx.ConnectError)
    assert navigations == []
    assert "Error signing in with google" in caplog.text


@pytest.mark.asyncio
async def test_unexpected_sign_in_error_is_wrapped(provider, fake_service):
    fake_service.oauth_error = RuntimeError("misconfigured client")

    async with provider:
        with pytest.raises(OAuthInitiationError) as exc_info:
            await provider.context.sign_in_with_github()

    assert exc_info.value.provider == "github"
    assert isinstance(exc_info.value.__cause__, RuntimeError)


@pytest.mark.asyncio
async def test_sign_in_is_not_retried(provider, fake_service):
    fake_service.oauth_error = OAuthInitiationError(OAuthProvider.GITHUB, "rejected")

    async with provider:
        with pytest.raises(OAuthInitiationError):
            await provider.context.sign_in_with_github()

    assert len(fake_service.oauth_calls) == 1


# ============================================================================
# Sign-out
# ============================================================================

@pytest.mark.asyncio
async def test_sign_out_redirects_to_login(provider, fake_service, identity, location, navigations):
    async with provider:
        location.pathname = "/settings"
        fake_service.emit(SignedIn(identity=identity))

        redirect = await provider.context.sign_out()

        assert provider.context.identity is None
        assert provider.context.is_loading is False

    assert redirect == "https://auth.example.com/login"
    assert navigations == ["https://auth.example.com/login"]


@pytest.mark.asyncio
async def test_sign_out_failure_keeps_session_and_does_not_navigate(provider, fake_service, identity, location, navigations):
    fake_service.sign_out_error = SignOutError(httpx.ReadTimeout("timed out"))

    async with provider:
        location.pathname = "/settings"
        fake_service.emit(SignedIn(identity=identity))

        with pytest.raises(SignOutError):
            await provider.context.sign_out()

        assert provider.context.identity == identity

    assert navigations == []


@pytest.mark.asyncio
async def test_unexpected_sign_out_error_is_wrapped(provider, fake_service, navigations):
    fake_service.sign_out_error = ConnectionResetError("reset by peer")

    async with provider:
        with pytest.raises(SignOutError) as exc_info:
            await provider.context.sign_out()

    assert isinstance(exc_info.value.cause, ConnectionResetError)
    assert navigations == []


# ============================================================================
# Provider Lifecycle
# ============================================================================

@pytest.mark.asyncio
async def test_provider_subscribes_on_start_and_releases_on_close(provider, fake_service):
    assert fake_service.subscribe_count == 0

    async with provider:
        assert fake_service.subscribe_count == 1
        assert provider.listener.subscription.active is True

    assert fake_service.unsubscribe_count == 1
    assert provider.listener.subscription.active is False


@pytest.mark.asyncio
async def test_late_event_after_close_is_noop(provider, fake_service, identity):
    async with provider:
        fake_service.emit(SignedOut())
        callback = fake_service.callbacks[0]

    callback(SignedIn(identity=identity))

    assert provider.store.identity is None


@pytest.mark.asyncio
async def test_wait_until_resolved_returns_snapshot(provider, fake_service):
    async with provider:
        waiter = asyncio.create_task(provider.wait_until_resolved())
        await asyncio.sleep(0)
        fake_service.emit(SignedIn(identity=Identity(id="u1")))
        session = await asyncio.wait_for(waiter, timeout=1)

    assert session.identity == Identity(id="u1")
    assert session.is_loading is False


@pytest.mark.asyncio
async def test_wait_until_resolved_times_out_without_leaving_loading(provider):
    async with provider:
        with pytest.raises(SubscriptionError) as exc_info:
            await provider.wait_until_resolved(timeout=0.05)

        assert provider.store.is_loading is True

    assert exc_info.value.timeout == 0.05


@pytest.mark.asyncio
async def test_watchdog_logs_when_channel_never_fires(provider, caplog):
    with caplog.at_level(logging.ERROR, logger="authportal.auth.context"):
        async with provider:
            await asyncio.sleep(provider.resolution_timeout + 0.1)

    assert "No session event received" in caplog.text


@pytest.mark.asyncio
async def test_context_exposes_read_only_snapshot(provider, fake_service, identity):
    async with provider:
        fake_service.emit(SignedIn(identity=identity))
        snapshot = provider.context.snapshot()

        with pytest.raises(Exception):
            snapshot.identity = None

    assert provider.context.identity == identity
