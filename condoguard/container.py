"""
Engine Composition Root.

The ``create_engine()`` factory wires every repository and service
together, returning a typed dict that the navigation layer can consume
without knowing the internal dependency graph.
"""

from __future__ import annotations

from typing import Optional, TypedDict

from condoguard.access_gate import AccessGate, RoutePolicy
from condoguard.config import AppConfig
from condoguard.database import DatabaseManager
from condoguard.identity import IdentityProvider
from condoguard.logger import get_logger
from condoguard.repositories.access_repository import AccessRecordRepository
from condoguard.repositories.profile_repository import ProfileRepository
from condoguard.repositories.tenant_repository import TenantRepository
from condoguard.services.access_review import AccessReviewService
from condoguard.services.local_settings import LocalSettingsStore
from condoguard.services.new_account_router import Clock, NewAccountRouter, utcnow
from condoguard.services.pending_role import PendingRoleApplier
from condoguard.services.profile_resolver import ProfileResolver
from condoguard.session_store import SessionStore


class EngineContainer(TypedDict):
    """Typed container for the wired engine."""

    session_store: SessionStore
    access_gate: AccessGate
    access_review_service: AccessReviewService
    pending_role_applier: PendingRoleApplier
    profile_resolver: ProfileResolver
    new_account_router: NewAccountRouter
    local_settings: LocalSettingsStore


def create_engine(
    db: DatabaseManager,
    config: AppConfig,
    identity: Optional[IdentityProvider] = None,
    clock: Clock = utcnow,
) -> EngineContainer:
    """Wire all repositories and services together.

    Args:
        db: Initialised DatabaseManager with the local schema in place.
        config: Application configuration.
        identity: Identity provider used for metadata lookups and
            sign-out.  The caller still has to ``attach`` the store.
        clock: Source of "now" for new-account detection.

    Returns:
        EngineContainer mapping component names to wired instances.
    """
    logger = get_logger("engine")

    # ------------------------------------------------------------------
    # 1. Repositories (data-access layer)
    # ------------------------------------------------------------------
    profile_repo = ProfileRepository(db=db, logger=logger)
    access_repo = AccessRecordRepository(db=db, logger=logger)
    tenant_repo = TenantRepository(db=db, logger=logger)

    # ------------------------------------------------------------------
    # 2. Leaf services
    # ------------------------------------------------------------------
    local_settings = LocalSettingsStore(db=db, logger=logger)
    profile_resolver = ProfileResolver(
        repo=profile_repo,
        logger=logger,
        identity=identity,
        db=db,
    )
    pending_role_applier = PendingRoleApplier(
        markers=local_settings,
        repo=profile_repo,
        logger=logger,
        db=db,
    )
    new_account_router = NewAccountRouter(
        tenants=tenant_repo,
        logger=logger,
        window_s=config.NEW_ACCOUNT_WINDOW_S,
        clock=clock,
    )

    # ------------------------------------------------------------------
    # 3. Session state and the components reading it
    # ------------------------------------------------------------------
    session_store = SessionStore(
        resolver=profile_resolver,
        pending_roles=pending_role_applier,
        router=new_account_router,
        logger=get_logger("session_store"),
        db=db,
    )
    access_gate = AccessGate(
        store=session_store,
        access_repo=access_repo,
        logger=get_logger("access_gate"),
        policy=RoutePolicy.from_config(config),
    )
    access_review_service = AccessReviewService(
        store=session_store,
        access_repo=access_repo,
        profile_repo=profile_repo,
        logger=logger,
        db=db,
    )

    return EngineContainer(
        session_store=session_store,
        access_gate=access_gate,
        access_review_service=access_review_service,
        pending_role_applier=pending_role_applier,
        profile_resolver=profile_resolver,
        new_account_router=new_account_router,
        local_settings=local_settings,
    )
