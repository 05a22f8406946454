"""
Session Store.

Single owner of the process-wide ``{session, profile, loading}`` state.
Identity-provider events go in through :meth:`SessionStore.handle_event`;
everything else only reads, through :meth:`SessionStore.snapshot` and
the convenience properties.

Usage::

    store = SessionStore(resolver=..., pending_roles=..., router=..., logger=...)
    store.attach(identity, on_destination=navigate)
    if store.snapshot().is_manager:
        ...

Event handlers are serialized: a sign-in runs to completion (pending
role, profile resolution, new-account routing) before the next event is
looked at.  Reads take a separate short lock and never wait on network
calls.
"""

from __future__ import annotations

import threading
from typing import Callable, Optional

from condoguard.database import DatabaseManager
from condoguard.identity import IdentityProvider, Subscription
from condoguard.logger import StructuredLogger
from condoguard.models.enums import AuthEvent, Route
from condoguard.models.profile import Profile
from condoguard.models.routing import AuthSnapshot
from condoguard.models.session import Session
from condoguard.roles import is_collaborator, is_manager
from condoguard.services.new_account_router import NewAccountRouter
from condoguard.services.pending_role import PendingRoleApplier
from condoguard.services.profile_resolver import ProfileResolver
from condoguard.utils.audit import log_audit_event

DestinationCallback = Callable[[Route], None]

_UNSET = object()


class SessionStore:
    """Injectable holder of the current session and profile.

    Parameters
    ----------
    resolver:
        Fetch-or-create of the profile row.
    pending_roles:
        One-shot application of a role staged before OAuth.
    router:
        First-run destination for brand-new accounts.
    logger:
        Structured logger.
    db:
        When given, audit events are also persisted locally.
    """

    def __init__(
        self,
        resolver: ProfileResolver,
        pending_roles: PendingRoleApplier,
        router: NewAccountRouter,
        logger: StructuredLogger,
        db: Optional[DatabaseManager] = None,
    ) -> None:
        self._resolver = resolver
        self._pending_roles = pending_roles
        self._router = router
        self._logger = logger
        self._db = db

        self._event_lock: threading.RLock = threading.RLock()
        self._state_lock: threading.Lock = threading.Lock()

        self._session: Optional[Session] = None
        self._profile: Optional[Profile] = None
        self._loading: bool = True
        self._initialized: bool = False
        self._last_routed: Optional[tuple[str, str]] = None

        self._identity: Optional[IdentityProvider] = None
        self._subscription: Optional[Subscription] = None

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def snapshot(self) -> AuthSnapshot:
        """Return a consistent read of the state.

        Capability flags are ``False`` while loading or without a
        profile; they never default to a permissive value.
        """
        with self._state_lock:
            session, profile, loading = self._session, self._profile, self._loading
        resolved = profile is not None and not loading
        return AuthSnapshot(
            session=session,
            profile=profile,
            loading=loading,
            is_manager=resolved and is_manager(profile.role),
            is_collaborator=resolved and is_collaborator(profile.role),
        )

    @property
    def session(self) -> Optional[Session]:
        return self.snapshot().session

    @property
    def profile(self) -> Optional[Profile]:
        return self.snapshot().profile

    @property
    def loading(self) -> bool:
        return self.snapshot().loading

    @property
    def is_manager(self) -> bool:
        return self.snapshot().is_manager

    @property
    def is_collaborator(self) -> bool:
        return self.snapshot().is_collaborator

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialize(self, session: Optional[Session]) -> None:
        """Apply the one-time startup probe.

        Ignored once any state-setting event has been handled, so a
        stale probe result never overwrites a newer sign-in or sign-out.
        """
        with self._event_lock:
            if self._initialized:
                self._logger.debug("Startup probe ignored; state already set.")
                return
            self._initialized = True
            self._set(session=session, profile=None, loading=True)
            profile: Optional[Profile] = None
            try:
                if session is not None:
                    profile = self._resolver.resolve(session.user.id, session.user)
            finally:
                self._set(profile=profile, loading=False)
            self._logger.info(
                "Session store initialised (signed_in=%s).", session is not None,
            )

    def handle_event(
        self,
        event: AuthEvent,
        session: Optional[Session],
    ) -> Optional[Route]:
        """Apply one provider event and return a one-time destination, if any."""
        with self._event_lock:
            if event == AuthEvent.SIGNED_OUT:
                self._initialized = True
                self._set(session=None, profile=None, loading=False)
                self._last_routed = None
                self._logger.info("Signed out; session cleared.")
                return None

            if event == AuthEvent.INITIAL_SESSION:
                self.initialize(session)
                return None

            if session is None:
                self._logger.warning("Ignoring %s without a session payload.", event)
                return None

            if event in (AuthEvent.TOKEN_REFRESHED, AuthEvent.USER_UPDATED):
                if self._snapshot_session() is None:
                    self._logger.warning(
                        "%s arrived without a prior session; treating as sign-in.",
                        event,
                    )
                    return self._sign_in(session)
                self._set(session=session)
                return None

            if event == AuthEvent.SIGNED_IN:
                return self._sign_in(session)

            self._logger.debug("Unhandled auth event %s", event)
            return None

    def refresh_profile(self) -> Optional[Profile]:
        """Re-resolve the profile of the current session user."""
        with self._event_lock:
            session = self._snapshot_session()
            if session is None:
                return None
            profile = self._resolver.resolve(session.user.id, session.user)
            self._set(profile=profile)
            return profile

    def sign_out(self) -> Route:
        """End the session and return where the navigation layer should go."""
        with self._event_lock:
            session = self._snapshot_session()
            if self._identity is not None:
                self._identity.sign_out()
            self.handle_event(AuthEvent.SIGNED_OUT, None)
            if session is not None:
                log_audit_event(
                    logger=self._logger,
                    action="SIGN_OUT",
                    entity_type="Session",
                    entity_id=session.user.id,
                    user_id=session.user.id,
                    conn=self._db.sqlite if self._db is not None else None,
                )
        return Route.LOGIN

    # ------------------------------------------------------------------
    # Provider wiring
    # ------------------------------------------------------------------

    def attach(
        self,
        identity: IdentityProvider,
        on_destination: Optional[DestinationCallback] = None,
    ) -> None:
        """Subscribe to *identity* events and run the startup probe."""

        def _listener(event: AuthEvent, session: Optional[Session]) -> None:
            try:
                destination = self.handle_event(event, session)
            except Exception as exc:
                self._logger.exception(
                    "Auth event %s could not be handled: %s", event, exc,
                )
                return
            if destination is not None and on_destination is not None:
                on_destination(destination)

        self._identity = identity
        self._subscription = identity.subscribe(_listener)
        self.initialize(identity.get_session())

    def detach(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _sign_in(self, session: Session) -> Optional[Route]:
        user = session.user
        self._initialized = True
        self._set(session=session, profile=None, loading=True)

        profile: Optional[Profile] = None
        try:
            self._pending_roles.apply_if_present(user.id, user)
            profile = self._resolver.resolve(user.id, user)
        finally:
            self._set(profile=profile, loading=False)

        # A redelivered sign-in (same user and token) routes at most once.
        key = (user.id, session.access_token)
        if key == self._last_routed:
            return None
        self._last_routed = key

        destination = self._router.decide(user, profile)
        if destination is not None:
            self._logger.info("New account %s routed to %s", user.id, destination)
        return destination

    def _snapshot_session(self) -> Optional[Session]:
        with self._state_lock:
            return self._session

    def _set(
        self,
        session: object = _UNSET,
        profile: object = _UNSET,
        loading: object = _UNSET,
    ) -> None:
        with self._state_lock:
            if session is not _UNSET:
                self._session = session  # type: ignore[assignment]
            if profile is not _UNSET:
                self._profile = profile  # type: ignore[assignment]
            if loading is not _UNSET:
                self._loading = loading  # type: ignore[assignment]
