"""
Unit Tests for the Change Listener
==================================

Tests for authportal/auth/listener.py

Test Coverage:
--------------
1. Loading clears after exactly the first event and stays clear
2. SignedIn on an auth entry page redirects to the dashboard; elsewhere not
3. SignedOut clears identity without redirecting
4. Consecutive events replace, never merge
5. Events after unsubscribe leave the session untouched
6. Subscription is registered once and released once
"""

import pytest

from authportal.auth.listener import ChangeListener
from authportal.auth.redirects import BrowserLocation
from authportal.auth.store import SessionStore
from authportal.models import Identity, Session, SignedIn, SignedOut

DASHBOARD = "https://app.example.com/dashboard"


@pytest.fixture
def store():
    return SessionStore()


@pytest.fixture
def listener(store, fake_service, location):
    listener = ChangeListener(store, fake_service, location, DASHBOARD)
    listener.start()
    return listener


@pytest.mark.parametrize(
    "events",
    [
        [SignedOut()],
        [SignedOut(), SignedOut()],
        [SignedIn(identity=Identity(id="a")), SignedOut(), SignedIn(identity=Identity(id="b"))],
    ],
)
def test_loading_clears_after_first_event_and_stays_clear(store, fake_service, listener, events):
    loading_after_each = []
    for event in events:
        fake_service.emit(event)
        loading_after_each.append(store.is_loading)

    assert loading_after_each == [False] * len(events)


def test_exactly_one_loading_transition(store, fake_service, listener, identity):
    snapshots = []
    store.observe(snapshots.append)

    fake_service.emit(SignedIn(identity=identity))
    fake_service.emit(SignedOut())
    fake_service.emit(SignedIn(identity=identity))

    flags = [snapshot.is_loading for snapshot in snapshots]
    transitions = sum(1 for before, after in zip([True] + flags, flags) if before and not after)
    assert transitions == 1
    assert flags[-1] is False


def test_null_event_at_start(store, fake_service, listener, navigations):
    fake_service.emit(SignedOut())

    assert store.identity is None
    assert store.is_loading is False
    assert navigations == []


def test_sign_in_on_login_page_redirects_to_dashboard(store, fake_service, listener, location, navigations):
    location.pathname = "/login"

    fake_service.emit(SignedIn(identity=Identity(id="u1")))

    assert store.identity == Identity(id="u1")
    assert store.is_loading is False
    assert navigations == [DASHBOARD]


def test_sign_in_on_deep_link_does_not_redirect(store, fake_service, listener, location, navigations):
    location.pathname = "/settings"

    fake_service.emit(SignedIn(identity=Identity(id="u1")))

    assert store.identity == Identity(id="u1")
    assert store.is_loading is False
    assert navigations == []


def test_redirect_sees_identity_before_loading_clears(store, fake_service, location):
    observed = []

    class RecordingLocation(BrowserLocation):
        def navigate(self, url):
            observed.append((store.identity, store.is_loading))
            super().navigate(url)

    navigator = RecordingLocation("/")
    ChangeListener(store, fake_service, navigator, DASHBOARD).start()

    fake_service.emit(SignedIn(identity=Identity(id="u1")))

    assert observed == [(Identity(id="u1"), True)]
    assert store.is_loading is False


def test_later_sign_in_writes_one_snapshot(store, fake_service, listener, identity):
    fake_service.emit(SignedOut())
    snapshots = []
    store.observe(snapshots.append)

    fake_service.emit(SignedIn(identity=identity))

    assert snapshots == [Session(identity=identity, is_loading=False)]


def test_redirect_uses_path_at_event_time(store, fake_service, listener, location, navigations):
    location.pathname = "/settings"
    fake_service.emit(SignedIn(identity=Identity(id="u1")))
    location.pathname = "/signup"
    fake_service.emit(SignedIn(identity=Identity(id="u1")))

    assert navigations == [DASHBOARD]


def test_sign_out_event_never_redirects(store, fake_service, listener, location, navigations):
    location.pathname = "/login"
    fake_service.emit(SignedOut())
    location.pathname = "/settings"
    fake_service.emit(SignedOut())

    assert navigations == []


def test_consecutive_events_keep_only_latest_identity(store, fake_service, listener):
    a = Identity(id="a", email="a@example.com", user_metadata={"name": "A"})
    b = Identity(id="b")

    fake_service.emit(SignedIn(identity=a))
    fake_service.emit(SignedIn(identity=b))

    assert store.identity == b
    assert store.identity.email is None
    assert store.identity.user_metadata == {}


def test_late_event_after_unsubscribe_is_ignored(store, fake_service, listener, identity, navigations):
    fake_service.emit(SignedOut())
    callback = fake_service.callbacks[0]
    before = store.session

    listener.stop()
    callback(SignedIn(identity=identity))

    assert store.session == before
    assert store.identity is None
    assert navigations == []


def test_subscription_registered_once_and_released_once(fake_service, listener):
    assert fake_service.subscribe_count == 1

    listener.stop()
    listener.stop()

    assert fake_service.unsubscribe_count == 1
    assert listener.subscription.active is False
    with pytest.raises(RuntimeError):
        listener.start()


def test_start_twice_is_rejected(listener):
    with pytest.raises(RuntimeError):
        listener.start()


def test_events_processed_counter(fake_service, listener, identity):
    fake_service.emit(SignedOut())
    fake_service.emit(SignedIn(identity=identity))

    assert listener.events_processed == 2
