"""
Governance audit records and sinks.

Responsibility:
    Describes the audit record the kernel emits when a governance check
    denies an action (SoD conflict, closed period, unbalanced journal,
    tax mismatch) and defines the ``AuditSink`` protocol that receives it.

Architecture position:
    Kernel > Services.  Storage of audit records belongs to the caller;
    the kernel only hands records to whatever sink it was given.

Failure modes:
    Sinks are fire-and-forget.  ``emit_audit`` logs a failing sink with
    its traceback and returns, so the governance error that triggered the
    record is always the one the caller sees.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from governance_kernel.logging_config import get_logger
from governance_kernel.utils.hashing import hash_payload

logger = get_logger("services.audit")


class AuditEventType:
    SOD_VIOLATION = "SOD_VIOLATION"
    MAKER_CHECKER_CONFLICT = "MAKER_CHECKER_CONFLICT"
    LIFECYCLE_CONFLICT = "LIFECYCLE_CONFLICT"
    PERIOD_VIOLATION = "PERIOD_VIOLATION"
    LEDGER_VIOLATION = "LEDGER_VIOLATION"
    TAX_VIOLATION = "TAX_VIOLATION"


@dataclass(frozen=True)
class GovernanceAuditRecord:
    """One denied governance decision."""

    event_type: str
    occurred_at: datetime
    tenant_id: str | None
    actor_id: str
    document_id: str | None
    document_type: str | None
    action: str
    error_code: str
    rule_code: str | None = None
    reason: str | None = None
    details: dict[str, Any] = field(default_factory=dict)

    def payload(self) -> dict[str, Any]:
        return {
            "event_type": self.event_type,
            "occurred_at": self.occurred_at,
            "tenant_id": self.tenant_id,
            "actor_id": self.actor_id,
            "document_id": self.document_id,
            "document_type": self.document_type,
            "action": self.action,
            "error_code": self.error_code,
            "rule_code": self.rule_code,
            "reason": self.reason,
            "details": self.details,
        }

    @property
    def payload_hash(self) -> str:
        return hash_payload(self.payload())


@runtime_checkable
class AuditSink(Protocol):
    def record(self, record: GovernanceAuditRecord) -> None: ...


class LoggingAuditSink:
    """Writes each record to the ``governance_kernel.audit`` logger."""

    def __init__(self) -> None:
        self._logger = get_logger("audit")

    def record(self, record: GovernanceAuditRecord) -> None:
        self._logger.warning(
            "governance_audit",
            extra={**record.payload(), "payload_hash": record.payload_hash},
        )


class InMemoryAuditSink:
    """Keeps records in a list.  Used by tests and local tooling."""

    def __init__(self) -> None:
        self.records: list[GovernanceAuditRecord] = []

    def record(self, record: GovernanceAuditRecord) -> None:
        self.records.append(record)

    def of_type(self, event_type: str) -> list[GovernanceAuditRecord]:
        return [r for r in self.records if r.event_type == event_type]

    def clear(self) -> None:
        self.records.clear()


def emit_audit(sink: AuditSink | None, record: GovernanceAuditRecord) -> None:
    """Hand ``record`` to ``sink``; a failing sink is logged, never raised."""
    if sink is None:
        return
    try:
        sink.record(record)
    except Exception:
        logger.error(
            "audit_sink_failed",
            exc_info=True,
            extra={
                "event_type": record.event_type,
                "document_id": record.document_id,
                "rule_code": record.rule_code,
            },
        )
