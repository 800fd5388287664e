"""Operation audit trail."""

from kafka_explorer.audit.log import (
    AuditEntry,
    AuditLog,
    AuditOperation,
    AuditResult,
    read_audit_log,
)

__all__ = ["AuditEntry", "AuditLog", "AuditOperation", "AuditResult", "read_audit_log"]
