from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from condoguard.identity import SupabaseIdentityProvider, session_from_provider
from condoguard.models.enums import AuthEvent

CREATED = datetime(2026, 3, 1, tzinfo=timezone.utc)


def _raw_user(**overrides):
    data = dict(
        id="user-1",
        email="ana@example.com",
        user_metadata={"name": "Ana", "role": "colaborador"},
        created_at=CREATED,
    )
    data.update(overrides)
    return SimpleNamespace(**data)


def _raw_session(token="tok"):
    return SimpleNamespace(access_token=token, refresh_token="r", expires_at=123, user=_raw_user())


class FakeAuth:
    def __init__(self):
        self.session = None
        self.callback = None
        self.signed_out = False
        self.oauth_credentials = None
        self.fail = False

    def get_session(self):
        if self.fail:
            raise ConnectionError("offline")
        return self.session

    def get_user(self):
        if self.fail:
            raise ConnectionError("offline")
        user = self.session.user if self.session else None
        return SimpleNamespace(user=user)

    def on_auth_state_change(self, callback):
        self.callback = callback
        return SimpleNamespace(unsubscribe=lambda: None)

    def sign_out(self):
        if self.fail:
            raise ConnectionError("offline")
        self.signed_out = True

    def sign_in_with_oauth(self, credentials):
        self.oauth_credentials = credentials
        return SimpleNamespace(url="https://auth.example.com/authorize?provider=google")


@pytest.fixture()
def auth():
    return FakeAuth()


@pytest.fixture()
def provider(auth, logger):
    return SupabaseIdentityProvider(client=SimpleNamespace(auth=auth), logger=logger)


def test_session_conversion():
    session = session_from_provider(_raw_session())

    assert session is not None
    assert session.user_id == "user-1"
    assert session.user.full_name == "Ana"
    assert session.user.role_hint == "colaborador"


def test_missing_session_converts_to_none():
    assert session_from_provider(None) is None
    assert session_from_provider(SimpleNamespace(access_token="t", user=None)) is None


def test_get_session_failure_reads_as_signed_out(auth, provider):
    auth.fail = True

    assert provider.get_session() is None
    assert provider.get_user() is None


def test_get_user(auth, provider):
    auth.session = _raw_session()

    user = provider.get_user()

    assert user is not None and user.email == "ana@example.com"


def test_subscribe_translates_events(auth, provider):
    received = []
    provider.subscribe(lambda event, session: received.append((event, session)))

    auth.callback("SIGNED_IN", _raw_session("t1"))
    auth.callback("PASSWORD_RECOVERY", _raw_session("t2"))
    auth.callback("SIGNED_OUT", None)

    assert [event for event, _ in received] == [AuthEvent.SIGNED_IN, AuthEvent.SIGNED_OUT]
    assert received[0][1].access_token == "t1"
    assert received[1][1] is None


def test_sign_out_failure_is_swallowed(auth, provider):
    auth.fail = True

    provider.sign_out()

    assert not auth.signed_out


def test_begin_oauth(auth, provider):
    url = provider.begin_oauth("google", redirect_to="https://app.example.com/callback")

    assert url.startswith("https://auth.example.com/")
    assert auth.oauth_credentials == {
        "provider": "google",
        "options": {"redirect_to": "https://app.example.com/callback"},
    }
