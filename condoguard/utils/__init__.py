"""Shared utilities for the CondoGuard engine."""

from condoguard.utils.audit import AuditEvent, log_audit_event, persist_audit_event

__all__ = [
    "AuditEvent",
    "log_audit_event",
    "persist_audit_event",
]
