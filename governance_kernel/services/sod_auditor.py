"""
SoDAuditor -- standalone SoD assertion for workflows outside the lifecycle.

Responsibility:
    Period close, checklist sign-off, receipt posting and similar
    back-office steps need the same SoD decision as the document lifecycle
    without a state transition.  ``assert_no_lifecycle_conflict`` runs the
    engine, classifies the denial for the audit trail and raises with a
    message suitable for the end user.

Architecture position:
    Kernel > Services.  Thin shell over ``domain.sod.evaluate_sod``.

Failure modes:
    SoDViolationError -- ``rule_code`` is the engine's rule, the message is
    one of the two user-facing texts below.
"""

from __future__ import annotations

from governance_kernel.domain.clock import Clock, SystemClock
from governance_kernel.domain.policy import GovernancePolicy
from governance_kernel.domain.sod import SoDContext, SoDDecision, evaluate_sod
from governance_kernel.exceptions import SoDViolationError
from governance_kernel.logging_config import get_logger
from governance_kernel.services.audit import (
    AuditEventType,
    AuditSink,
    GovernanceAuditRecord,
    emit_audit,
)

logger = get_logger("services.sod_auditor")

MAKER_CHECKER_MESSAGE = "You cannot approve or post a transaction you initiated."
LIFECYCLE_MESSAGE = (
    "You cannot perform this action because you already participated in "
    "this transaction workflow."
)

_MAKER_CHECKER_RULES = frozenset({
    "SOD_MAKER_CANNOT_APPROVE",
    "SOD_MAKER_CANNOT_POST",
    "SOD_MAKER_CANNOT_REVIEW",
    "SOD_AR_RECEIPT_SELF_POST_DISABLED",
})


def classify_conflict(decision: SoDDecision) -> str:
    if decision.rule_code in _MAKER_CHECKER_RULES:
        return AuditEventType.MAKER_CHECKER_CONFLICT
    return AuditEventType.LIFECYCLE_CONFLICT


class SoDAuditor:
    """Evaluates SoD for an arbitrary action and records denials."""

    def __init__(
        self,
        policy: GovernancePolicy,
        *,
        clock: Clock | None = None,
        audit_sink: AuditSink | None = None,
    ):
        self._policy = policy
        self._clock = clock or SystemClock()
        self._audit_sink = audit_sink

    def evaluate(self, ctx: SoDContext) -> SoDDecision:
        return evaluate_sod(
            ctx,
            rules=self._policy.sod_rules,
            separation_rules=self._policy.separation_rules,
        )

    def assert_no_lifecycle_conflict(
        self,
        ctx: SoDContext,
        *,
        extra_details: dict | None = None,
    ) -> None:
        """
        Raises:
            SoDViolationError: the engine denied ``ctx.action``.
        """
        decision = self.evaluate(ctx)
        if decision.allowed:
            return

        event_type = classify_conflict(decision)
        message = (
            MAKER_CHECKER_MESSAGE
            if event_type == AuditEventType.MAKER_CHECKER_CONFLICT
            else LIFECYCLE_MESSAGE
        )
        conflict = SoDViolationError(
            rule_code=decision.rule_code or "SOD_VIOLATION",
            reason=decision.reason or message,
            action=ctx.action,
            conflicting_permission=decision.conflicting_permission,
            message=message,
        )
        logger.warning(
            "sod_conflict",
            extra={
                "error": conflict,
                "event_type": event_type,
                "entity_type": ctx.entity_type,
                "entity_id": ctx.entity_id,
            },
        )
        emit_audit(
            self._audit_sink,
            GovernanceAuditRecord(
                event_type=event_type,
                occurred_at=self._clock.now(),
                tenant_id=self._policy.tenant_id,
                actor_id=ctx.actor_user_id,
                document_id=ctx.entity_id or None,
                document_type=ctx.entity_type or None,
                action=ctx.action,
                error_code=conflict.code,
                rule_code=conflict.rule_code,
                reason=decision.reason,
                details=dict(extra_details or {}),
            ),
        )
        raise conflict
