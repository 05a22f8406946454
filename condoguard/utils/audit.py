"""
Structured Audit Logging Utility.

Every state change the engine makes on a user's behalf (profile
creation, pending-role application, admission decisions, sign-out) is
logged as a structured JSON object.  Provides a Pydantic-validated model
and a single function for consistent audit trail entries.
"""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timezone
from typing import Optional, Union

from pydantic import BaseModel, Field

from condoguard.logger import StructuredLogger

__all__ = ["AuditEvent", "log_audit_event", "persist_audit_event"]

# Flat scalars only; nested structures do not belong in the audit log.
DetailValue = Union[str, int, float, bool, None]


class AuditEvent(BaseModel):
    """Schema-validated representation of a single audit trail entry."""

    timestamp: str
    action: str
    entity_type: str
    entity_id: str
    user_id: str
    details: dict[str, DetailValue] = Field(default_factory=dict)


def _build_event(
    action: str,
    entity_type: str,
    entity_id: str,
    user_id: str,
    details: Optional[dict[str, DetailValue]],
) -> AuditEvent:
    return AuditEvent(
        timestamp=datetime.now(timezone.utc).isoformat(),
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        user_id=user_id,
        details=details or {},
    )


def log_audit_event(
    logger: StructuredLogger,
    action: str,
    entity_type: str,
    entity_id: str,
    user_id: str,
    details: Optional[dict[str, DetailValue]] = None,
    conn: Optional[sqlite3.Connection] = None,
) -> None:
    """Log a structured JSON audit event, with optional SQLite persistence.

    Args:
        logger: The logger instance to write to.
        action: What happened (e.g. ``"PROFILE_CREATE"``, ``"ACCESS_APPROVE"``).
        entity_type: Type of entity affected (``"Profile"``, ``"AccessRecord"``).
        entity_id: Primary key of the affected entity.
        user_id: ID of the user who performed the action.
        details: Optional additional context (e.g. old/new values).
        conn: Optional SQLite connection.  When provided, the event is
            also written to the ``audit_log`` table.  Persistence errors
            are logged and never propagated.
    """
    event = _build_event(action, entity_type, entity_id, user_id, details)
    logger.info("AUDIT: %s", json.dumps(event.model_dump(), default=str))

    if conn is not None:
        try:
            persist_audit_event(
                conn=conn,
                action=action,
                entity_type=entity_type,
                entity_id=entity_id,
                user_id=user_id,
                details=details,
            )
        except (sqlite3.Error, ValueError) as db_err:
            logger.warning(
                "Failed to persist audit event to SQLite: %s", db_err
            )


def persist_audit_event(
    conn: sqlite3.Connection,
    action: str,
    entity_type: str,
    entity_id: str,
    user_id: str,
    details: Optional[dict[str, DetailValue]] = None,
) -> None:
    """Write an audit event to the SQLite ``audit_log`` table.

    The event is Pydantic-validated before insertion; a
    :class:`pydantic.ValidationError` propagates to the caller so that
    malformed audit data is never silently persisted.
    """
    event = _build_event(action, entity_type, entity_id, user_id, details)

    conn.execute(
        """
        INSERT INTO audit_log (timestamp, action, entity_type, entity_id, user_id, details)
        VALUES (?, ?, ?, ?, ?, ?)
        """,
        (
            event.timestamp,
            event.action,
            event.entity_type,
            event.entity_id,
            event.user_id,
            json.dumps(event.details, default=str),
        ),
    )
    conn.commit()
