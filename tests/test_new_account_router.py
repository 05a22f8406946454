from datetime import timedelta

import pytest

from condoguard.models.enums import Route
from condoguard.models.profile import Profile
from condoguard.repositories.tenant_repository import TenantRepository
from condoguard.services.new_account_router import NewAccountRouter
from tests.conftest import NOW, make_user


@pytest.fixture()
def router(db, logger):
    return NewAccountRouter(
        tenants=TenantRepository(db=db, logger=logger),
        logger=logger,
        window_s=60.0,
        clock=lambda: NOW,
    )


def _profile(role):
    return Profile(id="user-1", full_name="Ana", email="ana@example.com", role=role)


def test_new_manager_without_tenants_goes_to_onboarding(router):
    user = make_user(age=timedelta(seconds=5))

    assert router.decide(user, _profile("sindico")) == Route.ONBOARDING


def test_new_manager_with_a_tenant_is_not_routed(supabase, router):
    supabase.tables["condominios"] = [{"id": "1", "sindico_id": "user-1"}]
    user = make_user(age=timedelta(seconds=5))

    assert router.decide(user, _profile("sindico")) is None


def test_new_collaborator_goes_to_tenant_selection(supabase, router):
    user = make_user(age=timedelta(seconds=5))

    assert router.decide(user, _profile("colaborador")) == Route.SELECT_TENANT
    assert supabase.count("condominios", "select") == 0


def test_old_account_is_not_routed(router):
    user = make_user(age=timedelta(minutes=5))

    assert router.decide(user, _profile("sindico")) is None
    assert router.decide(user, _profile("colaborador")) is None


def test_unresolved_profile_is_not_routed(router):
    assert router.decide(make_user(age=timedelta(seconds=1)), None) is None


def test_count_failure_skips_onboarding(supabase, router):
    supabase.failures[("condominios", "select")] = ConnectionError("offline")
    user = make_user(age=timedelta(seconds=5))

    assert router.decide(user, _profile("sindico")) is None


def test_naive_timestamps_are_utc(router):
    naive = NOW.replace(tzinfo=None) - timedelta(seconds=10)
    user = make_user().model_copy(update={"created_at": naive})

    assert router.is_new_account(user)


def test_window_boundary(router):
    assert router.is_new_account(make_user(age=timedelta(seconds=59)))
    assert not router.is_new_account(make_user(age=timedelta(seconds=60)))
