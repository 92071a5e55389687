"""
LifecycleGuard -- the one gate every balance-affecting document passes through.

Responsibility:
    Runs the governance checks for a proposed lifecycle action, in a fixed
    order, and returns the next document snapshot (plus the generated
    ledger journal for POST and REVERSE):

      0. transition legality           (InvalidTransitionError)
      a. permission for the action     (AccessDeniedError)
      b. Segregation of Duties         (SoDViolationError)
      c. period guard on POST/REVERSE  (PeriodNotOpenError; PeriodMismatchError
         when POST is given a period other than the document's own)
      d. ledger / tax integrity        (PostingError subclasses)
         and reversal preconditions    (ReversalReasonRequiredError, ...)
      e. stamp actor + timestamp, advance status, bump version

    The first failure raises; the input snapshot is never modified.

Architecture position:
    Kernel > Services.  Composes the pure domain checks.  Customer and
    supplier invoices, GL journals, fixed assets, payments and receipts
    all call the same guard, parameterised by ``DocumentTypePolicy``.

Invariants enforced:
    - POSTED is reachable only through SUBMITTED -> APPROVED -> POSTED.
    - No journal is produced for an unbalanced, non-open-period or
      SoD-conflicted document.
    - A reversal keeps the original preparer as owner, records the
      initiating user, swaps debits and credits, and cannot itself be
      reversed.

Failure modes:
    Typed ``GovernanceKernelError`` subclasses only.  SoD, period, ledger
    and tax denials are also handed to the audit sink before raising.

Audit relevance:
    Denials are logged at WARNING with ``error=<exception>``, which the
    formatter turns into ``error_code`` (and ``rule_code`` for SoD);
    successful transitions are logged at INFO with from/to status.
"""

from __future__ import annotations

from dataclasses import asdict
from typing import Iterable

from governance_kernel.domain.clock import Clock, SystemClock
from governance_kernel.domain.ledger import (
    JournalLine,
    LedgerBalanceResult,
    LedgerReference,
    validate_journal,
)
from governance_kernel.domain.lifecycle import (
    STAMP_FIELDS,
    DocumentSnapshot,
    DocumentStatus,
    GeneratedJournal,
    TransitionResult,
    next_status,
    stamp,
)
from governance_kernel.domain.period_guard import (
    AccountingPeriod,
    assert_can_create,
    assert_can_post,
    assert_can_reverse,
)
from governance_kernel.domain.permissions import (
    Actor,
    require_any_permission,
    require_permission,
)
from governance_kernel.domain.policy import (
    DocumentTypePolicy,
    GovernancePolicy,
    LifecycleAction,
)
from governance_kernel.domain.sod import (
    TRAIL_FIELDS,
    ExercisedPermission,
    SoDContext,
    evaluate_sod,
    require_sod,
)
from governance_kernel.domain.tax import validate_tax_integrity
from governance_kernel.exceptions import (
    AccessDeniedError,
    InvalidTransitionError,
    MissingReferenceDataError,
    PeriodMismatchError,
    PeriodNotOpenError,
    PostingError,
    ReversalReasonRequiredError,
    SoDViolationError,
    TaxIntegrityViolationError,
)
from governance_kernel.logging_config import LogContext, get_logger
from governance_kernel.services.audit import (
    AuditEventType,
    AuditSink,
    GovernanceAuditRecord,
    emit_audit,
)
from governance_kernel.utils.hashing import build_deterministic_id

logger = get_logger("services.lifecycle_guard")

_LEDGER_ACTIONS = frozenset({LifecycleAction.APPROVE, LifecycleAction.POST})
_TAX_ACTIONS = frozenset({LifecycleAction.SUBMIT, LifecycleAction.APPROVE})


def journal_entry_id(document_id: str, lines: Iterable[JournalLine]) -> str:
    """Deterministic id of the journal a document's lines post as."""
    return build_deterministic_id(
        {"document_id": document_id, "lines": [asdict(line) for line in lines]},
        namespace="journal",
    ).entity_id


def reversal_document_id(original_document_id: str) -> str:
    return build_deterministic_id(
        {"reversal_of": original_document_id}, namespace="reversal"
    ).entity_id


def _coerce_action(document: DocumentSnapshot, action: LifecycleAction | str) -> LifecycleAction:
    try:
        return LifecycleAction(action)
    except ValueError:
        unknown = InvalidTransitionError(
            document.document_id, document.status.value, str(action), "unknown action"
        )
        logger.warning(
            "invalid_transition",
            extra={"error": unknown, "document_id": document.document_id},
        )
        raise unknown from None


class LifecycleGuard:
    """
    Shared lifecycle gate for every document type of one tenant.

    Contract:
        ``transition()`` either returns a ``TransitionResult`` whose
        ``document`` is the advanced snapshot, or raises the first
        governance violation found.  Pure apart from logging and the
        audit sink; safe to share across threads.
    """

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

    @property
    def policy(self) -> GovernancePolicy:
        return self._policy

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def check_creation(
        self,
        document_type: str,
        period: AccountingPeriod | None,
    ) -> None:
        """
        Creation gate.  Period-agnostic unless the tenant enables
        ``period_gated_creation``.

        Raises:
            UnknownDocumentTypeError, PeriodNotOpenError
        """
        doc_policy = self._policy.policy_for(document_type)
        assert_can_create(
            period.status if period is not None else None,
            period_name=period.name if period is not None else None,
            document_label=doc_policy.label,
            require_open=self._policy.period_gated_creation,
        )

    # ------------------------------------------------------------------
    # Transition
    # ------------------------------------------------------------------

    def transition(
        self,
        document: DocumentSnapshot,
        actor: Actor,
        action: LifecycleAction | str,
        *,
        period: AccountingPeriod | None = None,
        reference: LedgerReference | None = None,
        exercised_permissions: Iterable[ExercisedPermission] = (),
        checklist_completed_by_ids: Iterable[str] = (),
        reversal_reason: str | None = None,
        reversal_period: AccountingPeriod | None = None,
        locked_tax_source_ids: frozenset[str] = frozenset(),
    ) -> TransitionResult:
        """
        Run every check for ``action`` on ``document`` and advance it.

        Args:
            document: Current snapshot of the document.
            actor: Acting user with their permission codes.
            action: Lifecycle action (enum or its string value).
            period: Accounting period the document posts into.
            reference: Account / tax-rate catalog snapshot.  Required for
                ledger-affecting APPROVE/POST/REVERSE and for tax checks.
            exercised_permissions: Permissions already exercised on this
                document, for the permission-pair SoD check.
            checklist_completed_by_ids: Users who completed checklist items.
            reversal_reason: Mandatory for REVERSE.
            reversal_period: Period the reversal posts into (defaults to
                ``period``).
            locked_tax_source_ids: Tax sources locked by an earlier check.

        Raises:
            InvalidTransitionError, AccessDeniedError, SoDViolationError,
            PeriodNotOpenError, PostingError subclasses,
            ReversalReasonRequiredError, MissingReferenceDataError,
            UnknownDocumentTypeError.
        """
        action = _coerce_action(document, action)
        doc_policy = self._policy.policy_for(document.document_type)

        with LogContext.bind(
            tenant_id=self._policy.tenant_id,
            actor_id=actor.actor_id,
            document_id=document.document_id,
            action=action.value,
        ):
            # (0) legality
            try:
                target = next_status(document, action)
            except InvalidTransitionError as exc:
                logger.warning(
                    "invalid_transition",
                    extra={
                        "error": exc,
                        "current_status": exc.current_status,
                        "reason": exc.reason,
                    },
                )
                raise

            # (a) permission
            attempted = self._check_permission(doc_policy, actor, action)

            # (b) SoD
            self._check_sod(
                document,
                doc_policy,
                actor,
                action,
                attempted,
                tuple(exercised_permissions),
                tuple(checklist_completed_by_ids),
            )

            # (c) period
            if action == LifecycleAction.POST:
                self._check_period(document, doc_policy, actor, action, period)
            elif action == LifecycleAction.REVERSE:
                self._check_period(
                    document,
                    doc_policy,
                    actor,
                    action,
                    reversal_period if reversal_period is not None else period,
                )

            # (d) ledger / tax / reversal preconditions, then (e) stamp
            if action == LifecycleAction.REVERSE:
                return self._reverse(
                    document,
                    doc_policy,
                    actor,
                    target,
                    reference,
                    reversal_reason,
                    reversal_period if reversal_period is not None else period,
                )

            balance = None
            if action in _LEDGER_ACTIONS and doc_policy.ledger_affecting:
                balance = self._check_ledger(
                    document, doc_policy, actor, action, document.lines, reference
                )
            if action in _TAX_ACTIONS and doc_policy.tax_checked:
                self._check_tax(
                    document, doc_policy, actor, action, reference, locked_tax_source_ids
                )

            now = self._clock.now()
            changes: dict[str, object] = {}
            if action == LifecycleAction.APPROVE and doc_policy.approval_stamps_review:
                changes = {"reviewed_by_id": actor.actor_id, "reviewed_at": now}
            if action == LifecycleAction.POST and period is not None and document.period_id is None:
                changes = {"period_id": period.period_id}
            updated = stamp(document, action, actor.actor_id, now, target, **changes)

            journal = None
            if action == LifecycleAction.POST and balance is not None:
                journal = GeneratedJournal(
                    entry_id=journal_entry_id(document.document_id, document.lines),
                    document_id=document.document_id,
                    period_id=updated.period_id,
                    lines=document.lines,
                    total_debit=balance.total_debit,
                    total_credit=balance.total_credit,
                )

            logger.info(
                "lifecycle_transition",
                extra={
                    "document_type": document.document_type,
                    "from_status": document.status.value,
                    "to_status": target.value,
                    "version": updated.version,
                    "journal_entry_id": journal.entry_id if journal else None,
                },
            )
            return TransitionResult(document=updated, journal=journal, balance=balance)

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------

    def _check_permission(
        self,
        doc_policy: DocumentTypePolicy,
        actor: Actor,
        action: LifecycleAction,
    ) -> tuple[str, ...]:
        codes = doc_policy.permissions_for(action)
        if not codes:
            logger.warning(
                "permission_not_configured",
                extra={"document_type": doc_policy.document_type},
            )
            raise MissingReferenceDataError(
                f"permission codes for {doc_policy.document_type} {action.value}"
            )
        try:
            if len(codes) == 1:
                require_permission(actor, codes[0])
            else:
                require_any_permission(actor, codes)
        except AccessDeniedError as exc:
            logger.warning(
                "permission_denied",
                extra={
                    "error": exc,
                    "missing_permission": exc.missing_permission,
                    "missing_any_of": exc.missing_any_of,
                },
            )
            raise
        return tuple(code for code in codes if code in actor.permission_codes)

    def _check_sod(
        self,
        document: DocumentSnapshot,
        doc_policy: DocumentTypePolicy,
        actor: Actor,
        action: LifecycleAction,
        attempted: tuple[str, ...],
        exercised: tuple[ExercisedPermission, ...],
        checklist_completed_by_ids: tuple[str, ...],
    ) -> None:
        sod_action = doc_policy.sod_action_for(action)
        stamp_field = STAMP_FIELDS[action][0]
        ctx = SoDContext(
            action=sod_action,
            actor_user_id=actor.actor_id,
            entity_type=document.document_type,
            entity_id=document.document_id,
            created_by_id=document.created_by_id,
            submitted_by_id=document.submitted_by_id,
            approved_by_id=document.approved_by_id,
            reviewed_by_id=document.reviewed_by_id,
            posted_by_id=document.posted_by_id,
            reversal_initiated_by_id=document.reversal_initiated_by_id,
            checklist_completed_by_ids=checklist_completed_by_ids,
            allow_self_posting=self._policy.allow_self_posting,
            attempted_permissions=attempted,
            actor_permission_codes=actor.permission_codes,
            exercised_permissions=exercised,
            stamp_field=stamp_field if stamp_field in TRAIL_FIELDS else None,
        )
        decision = evaluate_sod(
            ctx,
            rules=self._policy.sod_rules,
            separation_rules=self._policy.separation_rules,
        )
        try:
            require_sod(decision, action=sod_action)
        except SoDViolationError as exc:
            logger.warning(
                "sod_violation",
                extra={
                    "error": exc,
                    "reason": decision.reason,
                    "sod_action": sod_action,
                    "conflicting_permission": decision.conflicting_permission,
                },
            )
            self._audit(
                AuditEventType.SOD_VIOLATION,
                document,
                actor,
                action,
                error_code=exc.code,
                rule_code=exc.rule_code,
                reason=decision.reason,
                details={
                    "sod_action": sod_action,
                    "permission_attempted": decision.permission_attempted,
                    "conflicting_permission": decision.conflicting_permission,
                },
            )
            raise

    def _check_period(
        self,
        document: DocumentSnapshot,
        doc_policy: DocumentTypePolicy,
        actor: Actor,
        action: LifecycleAction,
        period: AccountingPeriod | None,
    ) -> None:
        status = period.status if period is not None else None
        name = period.name if period is not None else None
        try:
            if action == LifecycleAction.REVERSE:
                assert_can_reverse(status, period_name=name, document_label=doc_policy.label)
            else:
                assert_can_post(status, period_name=name, document_label=doc_policy.label)
                if document.period_id is not None and period.period_id != document.period_id:
                    raise PeriodMismatchError(
                        document.period_id,
                        period.period_id,
                        "post",
                        document_label=doc_policy.label,
                    )
        except PeriodNotOpenError as exc:
            logger.warning(
                "period_not_open",
                extra={"error": exc, "period_name": name, "period_status": exc.period_status},
            )
            self._audit(
                AuditEventType.PERIOD_VIOLATION,
                document,
                actor,
                action,
                error_code=exc.code,
                reason=str(exc),
                details=exc.to_dict(),
            )
            raise

    def _check_ledger(
        self,
        document: DocumentSnapshot,
        doc_policy: DocumentTypePolicy,
        actor: Actor,
        action: LifecycleAction,
        lines: tuple[JournalLine, ...],
        reference: LedgerReference | None,
    ) -> LedgerBalanceResult:
        if reference is None:
            raise MissingReferenceDataError("ledger reference", document.document_id)
        try:
            return validate_journal(lines, reference)
        except PostingError as exc:
            details = exc.to_dict()
            logger.warning(
                "ledger_validation_failed",
                extra={"error": exc, "document_type": doc_policy.document_type,
                       "delta": details.get("delta")},
            )
            self._audit(
                AuditEventType.LEDGER_VIOLATION,
                document,
                actor,
                action,
                error_code=exc.code,
                reason=str(exc),
                details=details,
            )
            raise

    def _check_tax(
        self,
        document: DocumentSnapshot,
        doc_policy: DocumentTypePolicy,
        actor: Actor,
        action: LifecycleAction,
        reference: LedgerReference | None,
        locked_source_ids: frozenset[str],
    ) -> None:
        if not document.tax_lines:
            return
        if reference is None:
            raise MissingReferenceDataError("tax rates", document.document_id)
        try:
            validate_tax_integrity(
                document.tax_lines,
                net_amount=document.net_amount,
                tax_rates=reference.tax_rates,
                gross_amount=document.gross_amount,
                tolerance=self._policy.tax_tolerance,
                locked_source_ids=locked_source_ids,
                source_type=doc_policy.tax_source_type or document.document_type,
                source_id=document.document_id,
            )
        except TaxIntegrityViolationError as exc:
            logger.warning(
                "tax_integrity_failed",
                extra={
                    "error": exc,
                    "tax_line_index": exc.tax_line_index,
                    "expected": exc.expected,
                    "actual": exc.actual,
                },
            )
            self._audit(
                AuditEventType.TAX_VIOLATION,
                document,
                actor,
                action,
                error_code=exc.code,
                reason=exc.reason,
                details=exc.to_dict(),
            )
            raise

    # ------------------------------------------------------------------
    # Reversal
    # ------------------------------------------------------------------

    def _reverse(
        self,
        document: DocumentSnapshot,
        doc_policy: DocumentTypePolicy,
        actor: Actor,
        target: DocumentStatus,
        reference: LedgerReference | None,
        reason: str | None,
        period: AccountingPeriod | None,
    ) -> TransitionResult:
        if not reason or not reason.strip():
            missing = ReversalReasonRequiredError(document.document_id)
            logger.warning("reversal_reason_missing", extra={"error": missing})
            raise missing
        if document.is_reversal:
            rereversal = InvalidTransitionError(
                document.document_id,
                document.status.value,
                LifecycleAction.REVERSE.value,
                "a reversal cannot itself be reversed",
            )
            logger.warning(
                "invalid_transition",
                extra={"error": rereversal, "current_status": document.status.value},
            )
            raise rereversal

        swapped = tuple(line.swapped() for line in document.lines)
        reversal_id = reversal_document_id(document.document_id)
        original_entry_id = journal_entry_id(document.document_id, document.lines)

        balance = None
        journal = None
        if doc_policy.ledger_affecting:
            balance = self._check_ledger(
                document, doc_policy, actor, LifecycleAction.REVERSE, swapped, reference
            )

        now = self._clock.now()
        reason = reason.strip()
        period_id = period.period_id if period is not None else document.period_id

        reversal = DocumentSnapshot(
            document_id=reversal_id,
            document_type=document.document_type,
            status=DocumentStatus.POSTED,
            created_by_id=document.created_by_id,
            posted_by_id=actor.actor_id,
            posted_at=now,
            reversal_initiated_by_id=actor.actor_id,
            period_id=period_id,
            reversal_of_id=document.document_id,
            corrects_journal_id=original_entry_id if balance is not None else None,
            reversal_reason=reason,
            lines=swapped,
        )
        updated = stamp(
            document,
            LifecycleAction.REVERSE,
            actor.actor_id,
            now,
            target,
            reversed_by_document_id=reversal_id,
            reversal_reason=reason,
        )

        if balance is not None:
            journal = GeneratedJournal(
                entry_id=journal_entry_id(reversal_id, swapped),
                document_id=reversal_id,
                period_id=period_id,
                lines=swapped,
                total_debit=balance.total_debit,
                total_credit=balance.total_credit,
                reverses_entry_id=original_entry_id,
            )

        logger.info(
            "document_reversed",
            extra={
                "document_type": document.document_type,
                "reversal_document_id": reversal_id,
                "version": updated.version,
                "journal_entry_id": journal.entry_id if journal else None,
            },
        )
        return TransitionResult(
            document=updated, journal=journal, reversal=reversal, balance=balance
        )

    # ------------------------------------------------------------------
    # Audit
    # ------------------------------------------------------------------

    def _audit(
        self,
        event_type: str,
        document: DocumentSnapshot,
        actor: Actor,
        action: LifecycleAction,
        *,
        error_code: str,
        rule_code: str | None = None,
        reason: str | None = None,
        details: dict | None = None,
    ) -> None:
        emit_audit(
            self._audit_sink,
            GovernanceAuditRecord(
                event_type=event_type,
                occurred_at=self._clock.now(),
                tenant_id=self._policy.tenant_id,
                actor_id=actor.actor_id,
                document_id=document.document_id,
                document_type=document.document_type,
                action=action.value,
                error_code=error_code,
                rule_code=rule_code,
                reason=reason,
                details=dict(details or {}),
            ),
        )
