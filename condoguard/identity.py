"""
Identity Provider Adapter.

The engine consumes the identity provider through the narrow
:class:`IdentityProvider` protocol: a startup probe, a lifecycle-event
subscription, sign-out, and the OAuth hand-off URL.
:class:`SupabaseIdentityProvider` implements it over ``supabase.auth``.

Token issuance, refresh and verification stay inside the provider.
"""

from __future__ import annotations

from typing import Any, Callable, Optional, Protocol, runtime_checkable

from supabase import Client as SupabaseClient

from condoguard.logger import StructuredLogger
from condoguard.models.enums import AuthEvent
from condoguard.models.session import Session, SessionUser

AuthListener = Callable[[AuthEvent, Optional[Session]], None]


@runtime_checkable
class Subscription(Protocol):
    def unsubscribe(self) -> None: ...


@runtime_checkable
class IdentityProvider(Protocol):
    """What the engine needs from the identity provider."""

    def get_session(self) -> Optional[Session]: ...

    def get_user(self) -> Optional[SessionUser]: ...

    def subscribe(self, listener: AuthListener) -> Subscription: ...

    def sign_out(self) -> None: ...


def session_from_provider(raw: Any) -> Optional[Session]:
    """Convert a gotrue session object (or ``None``) to a :class:`Session`."""
    if raw is None or getattr(raw, "user", None) is None:
        return None
    return Session(
        access_token=raw.access_token,
        refresh_token=getattr(raw, "refresh_token", None),
        expires_at=getattr(raw, "expires_at", None),
        user=user_from_provider(raw.user),
    )


def user_from_provider(raw: Any) -> SessionUser:
    return SessionUser(
        id=str(raw.id),
        email=getattr(raw, "email", None),
        user_metadata=dict(getattr(raw, "user_metadata", None) or {}),
        created_at=raw.created_at,
    )


class SupabaseIdentityProvider:
    """:class:`IdentityProvider` backed by ``supabase.auth``.

    Parameters
    ----------
    client:
        Initialised Supabase client (publishable key).
    logger:
        Structured logger for provider-level failures.
    """

    def __init__(self, client: SupabaseClient, logger: StructuredLogger) -> None:
        self._client = client
        self._logger = logger

    def get_session(self) -> Optional[Session]:
        """Return the persisted session, or ``None`` when signed out.

        A provider failure is logged and reported as "no session".
        """
        try:
            return session_from_provider(self._client.auth.get_session())
        except Exception as exc:
            self._logger.warning("Session probe failed: %s", exc)
            return None

    def get_user(self) -> Optional[SessionUser]:
        try:
            response = self._client.auth.get_user()
        except Exception as exc:
            self._logger.warning("User lookup failed: %s", exc)
            return None
        if response is None or response.user is None:
            return None
        return user_from_provider(response.user)

    def subscribe(self, listener: AuthListener) -> Subscription:
        """Forward provider events to *listener* as typed values.

        Events the engine does not model are dropped with a debug log.
        """

        def _on_change(event: str, raw_session: Any) -> None:
            try:
                typed_event = AuthEvent(str(event))
            except ValueError:
                self._logger.debug("Ignoring auth event %s", event)
                return
            listener(typed_event, session_from_provider(raw_session))

        return self._client.auth.on_auth_state_change(_on_change)

    def sign_out(self) -> None:
        """Revoke the session; failures are logged, local state still clears."""
        try:
            self._client.auth.sign_out()
        except Exception as exc:
            self._logger.warning("Provider sign-out failed: %s", exc)

    def begin_oauth(self, provider: str, redirect_to: Optional[str] = None) -> str:
        """Return the URL that starts an OAuth sign-in with *provider*."""
        credentials: dict[str, Any] = {"provider": provider}
        if redirect_to:
            credentials["options"] = {"redirect_to": redirect_to}
        response = self._client.auth.sign_in_with_oauth(credentials)
        return response.url
