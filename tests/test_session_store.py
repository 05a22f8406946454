from datetime import timedelta

import pytest

from condoguard.models.enums import AuthEvent, Route
from tests.conftest import make_session, make_user, profile_row


@pytest.fixture()
def store(engine):
    return engine["session_store"]


@pytest.fixture()
def destinations(store, identity):
    routed = []
    store.attach(identity, on_destination=routed.append)
    return routed


def test_starts_loading_with_no_capabilities(store):
    snapshot = store.snapshot()

    assert snapshot.loading
    assert snapshot.session is None
    assert not snapshot.is_manager
    assert not snapshot.is_collaborator


def test_attach_without_session(store, destinations):
    assert not store.loading
    assert store.session is None
    assert store.profile is None


def test_attach_with_existing_session(supabase, store, identity):
    supabase.tables["profiles"] = [profile_row(role="colaborador")]
    identity.session = make_session()

    store.attach(identity)

    assert not store.loading
    assert store.is_collaborator
    assert not store.is_manager
    assert store.snapshot().user_id == "user-1"


def test_sign_in_resolves_profile(supabase, store, identity, destinations):
    supabase.tables["profiles"] = [profile_row(role="sindico")]

    identity.emit(AuthEvent.SIGNED_IN, make_session())

    assert store.is_manager
    assert store.profile.full_name == "Ana Souza"
    assert destinations == []


def test_new_manager_is_routed_to_onboarding_once(supabase, identity, destinations):
    session = make_session(make_user(age=timedelta(seconds=5)))

    identity.emit(AuthEvent.SIGNED_IN, session)
    identity.emit(AuthEvent.SIGNED_IN, session)

    assert destinations == [Route.ONBOARDING]
    assert len(supabase.tables["profiles"]) == 1


def test_sign_in_after_sign_out_routes_again(supabase, store, identity, destinations):
    user = make_user(age=timedelta(seconds=5))

    identity.emit(AuthEvent.SIGNED_IN, make_session(user, token="access-1"))
    identity.emit(AuthEvent.SIGNED_OUT, None)
    identity.emit(AuthEvent.SIGNED_IN, make_session(user, token="access-1"))

    assert destinations == [Route.ONBOARDING, Route.ONBOARDING]
    assert store._last_routed == ("user-1", "access-1")


def test_only_the_latest_sign_in_is_remembered(supabase, store, identity, destinations):
    for token in ("access-1", "access-2", "access-3"):
        identity.emit(AuthEvent.SIGNED_IN, make_session(token=token))

    assert store._last_routed == ("user-1", "access-3")


def test_new_collaborator_is_routed_to_tenant_selection(identity, destinations):
    user = make_user(role="colaborador", age=timedelta(seconds=5))

    identity.emit(AuthEvent.SIGNED_IN, make_session(user))

    assert destinations == [Route.SELECT_TENANT]


def test_pending_role_wins_over_stored_role(supabase, engine, store, identity, destinations):
    supabase.tables["profiles"] = [profile_row(role="sindico")]
    engine["pending_role_applier"].stage("colaborador")

    identity.emit(AuthEvent.SIGNED_IN, make_session())

    assert store.is_collaborator
    assert engine["pending_role_applier"].pending_role() is None


def test_token_refresh_keeps_profile(supabase, store, identity, destinations):
    supabase.tables["profiles"] = [profile_row(role="colaborador")]
    identity.emit(AuthEvent.SIGNED_IN, make_session(token="access-1"))
    reads = supabase.count("profiles", "select")

    identity.emit(AuthEvent.TOKEN_REFRESHED, make_session(token="access-2"))

    assert store.session.access_token == "access-2"
    assert store.is_collaborator
    assert supabase.count("profiles", "select") == reads


def test_token_refresh_without_prior_session_signs_in(supabase, store, identity, destinations):
    supabase.tables["profiles"] = [profile_row(role="colaborador")]

    identity.emit(AuthEvent.TOKEN_REFRESHED, make_session())

    assert store.is_collaborator


def test_signed_out_event_clears_state(supabase, store, identity, destinations):
    supabase.tables["profiles"] = [profile_row()]
    identity.emit(AuthEvent.SIGNED_IN, make_session())

    identity.emit(AuthEvent.SIGNED_OUT, None)

    snapshot = store.snapshot()
    assert snapshot.session is None
    assert snapshot.profile is None
    assert not snapshot.loading
    assert not snapshot.is_manager


def test_sign_out_returns_login(supabase, store, identity, db, destinations):
    supabase.tables["profiles"] = [profile_row()]
    identity.emit(AuthEvent.SIGNED_IN, make_session())

    assert store.sign_out() == Route.LOGIN

    assert identity.sign_out_calls == 1
    assert store.session is None
    row = db.sqlite.execute("SELECT user_id FROM audit_log WHERE action = 'SIGN_OUT'").fetchone()
    assert row["user_id"] == "user-1"


def test_late_startup_probe_is_ignored(supabase, store, identity):
    supabase.tables["profiles"] = [profile_row()]
    store.handle_event(AuthEvent.SIGNED_IN, make_session())

    store.initialize(None)

    assert store.session is not None


def test_sign_in_payload_is_required(store, destinations):
    assert store.handle_event(AuthEvent.SIGNED_IN, None) is None
    assert store.session is None


def test_failed_handler_does_not_leave_loading(store, identity, destinations, monkeypatch):
    def _boom(*args, **kwargs):
        raise RuntimeError("resolver exploded")

    monkeypatch.setattr(store._resolver, "resolve", _boom)

    identity.emit(AuthEvent.SIGNED_IN, make_session())

    assert not store.loading
    assert store.profile is None
    assert not store.is_manager
    assert destinations == []


def test_unresolved_profile_has_no_capabilities(supabase, store, identity, destinations):
    supabase.failures[("profiles", "select")] = ConnectionError("offline")

    identity.emit(AuthEvent.SIGNED_IN, make_session())

    assert store.session is not None
    assert store.profile is None
    assert not store.is_manager
    assert not store.is_collaborator


def test_refresh_profile_picks_up_role_change(supabase, store, identity, destinations):
    supabase.tables["profiles"] = [profile_row(role="sindico")]
    identity.emit(AuthEvent.SIGNED_IN, make_session())
    supabase.tables["profiles"][0]["role"] = "colaborador"

    profile = store.refresh_profile()

    assert profile is not None and profile.role == "colaborador"
    assert store.is_collaborator


def test_detach_unsubscribes(store, identity, destinations):
    store.detach()

    assert not identity.subscription.active
