"""Services for the governance kernel (lifecycle gate, SoD auditor, audit sinks)."""

from governance_kernel.services.audit import (
    AuditEventType,
    AuditSink,
    GovernanceAuditRecord,
    InMemoryAuditSink,
    LoggingAuditSink,
)
from governance_kernel.services.lifecycle_guard import LifecycleGuard
from governance_kernel.services.sod_auditor import SoDAuditor

__all__ = [
    "AuditEventType",
    "AuditSink",
    "GovernanceAuditRecord",
    "InMemoryAuditSink",
    "LifecycleGuard",
    "LoggingAuditSink",
    "SoDAuditor",
]
