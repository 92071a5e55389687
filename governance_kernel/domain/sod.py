"""
SoD Policy Engine -- Segregation-of-Duties decisions for one proposed action.

Responsibility:
    Given the attempted action, the acting user, the document's recorded
    actor trail and the tenant's rule set, decide allow/deny.  Three rule
    families are evaluated in a fixed order and the FIRST violation
    short-circuits:

    1. Ownership (maker-checker): the creator may not approve, post or
       review their own document unless the tenant allows self-posting.
    2. Lifecycle separation: built-in per-action trail rules (approver
       cannot post, poster cannot void, GL reviewer conflicts, ...) and the
       tenant's configured ``SeparationRule`` pairs, evaluated on the trail
       *as it would look* after the action is stamped.
    3. Forbidden permission pairs: attempting permission A while holding B,
       or after personally exercising B on this document, conflicts.  This
       stops one individual from accumulating incompatible capabilities
       across the lifecycle even when each step passes on its own.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  Rules arrive as explicit arguments;
    there is no module-level rule registry.

Failure modes:
    ``evaluate_sod`` never raises for a policy outcome; it returns an
    ``SoDDecision``.  ``require_sod`` and ``require_sod_separation`` turn a
    denial into ``SoDViolationError``, which callers must treat as fatal:
    never retried, never bypassed.

Audit relevance:
    Every denial carries a machine ``rule_code`` and a human ``reason`` so
    the audit sink can record exactly which rule fired.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from governance_kernel.exceptions import SoDViolationError

# Actor-trail fields the engine understands.
TRAIL_FIELDS: tuple[str, ...] = (
    "created_by_id",
    "submitted_by_id",
    "approved_by_id",
    "reviewed_by_id",
    "posted_by_id",
    "reversal_initiated_by_id",
)

# Trail field stamped by each generic action, used to build the prospective
# trail for separation rules when the caller does not name one.
DEFAULT_STAMP_FIELDS: dict[str, str] = {
    "SUBMIT": "submitted_by_id",
    "APPROVE": "approved_by_id",
    "REVIEW": "reviewed_by_id",
    "POST": "posted_by_id",
    "REVERSE": "reversal_initiated_by_id",
}


# =========================================================================
# Rule and context types
# =========================================================================


@dataclass(frozen=True)
class SoDRule:
    """Forbidden permission pair: one individual may not combine A and B."""

    forbidden_permission_a: str
    forbidden_permission_b: str
    description: str = ""

    def counterpart(self, permission: str) -> str | None:
        """The permission this rule pairs with ``permission``, if any."""
        if permission == self.forbidden_permission_a:
            return self.forbidden_permission_b
        if permission == self.forbidden_permission_b:
            return self.forbidden_permission_a
        return None


@dataclass(frozen=True)
class SeparationRule:
    """Two actor-trail fields that must never hold the same user."""

    label: str
    field_a: str
    field_b: str
    rule_code: str = "SOD_SEPARATION_REQUIRED"

    def __post_init__(self) -> None:
        for name in (self.field_a, self.field_b):
            if name not in TRAIL_FIELDS:
                raise ValueError(f"Unknown actor-trail field: {name}")


@dataclass(frozen=True)
class ExercisedPermission:
    """A permission already exercised on the document, and by whom."""

    permission: str
    actor_id: str


@dataclass(frozen=True)
class SoDContext:
    """Everything the engine may look at for one evaluation."""

    action: str
    actor_user_id: str
    entity_type: str = ""
    entity_id: str = ""
    created_by_id: str | None = None
    submitted_by_id: str | None = None
    approved_by_id: str | None = None
    reviewed_by_id: str | None = None
    posted_by_id: str | None = None
    reversal_initiated_by_id: str | None = None
    checklist_completed_by_ids: tuple[str, ...] = ()
    allow_self_posting: bool = False
    attempted_permissions: tuple[str, ...] = ()
    actor_permission_codes: frozenset[str] = field(default_factory=frozenset)
    exercised_permissions: tuple[ExercisedPermission, ...] = ()
    stamp_field: str | None = None

    def trail(self) -> dict[str, str | None]:
        """Recorded trail, ids normalised to strings."""
        return {name: _normalize_id(getattr(self, name)) for name in TRAIL_FIELDS}

    def prospective_trail(self) -> dict[str, str | None]:
        """Trail as it would look once this action stamps its field."""
        trail = self.trail()
        stamp = self.stamp_field or DEFAULT_STAMP_FIELDS.get(self.action)
        if stamp in trail:
            trail[stamp] = _normalize_id(self.actor_user_id)
        return trail


@dataclass(frozen=True)
class SoDDecision:
    """Outcome of ``evaluate_sod``."""

    allowed: bool
    reason: str | None = None
    rule_code: str | None = None
    permission_attempted: str | None = None
    conflicting_permission: str | None = None

    @classmethod
    def allow(cls) -> SoDDecision:
        return cls(allowed=True)

    @classmethod
    def deny(
        cls,
        rule_code: str,
        reason: str,
        permission_attempted: str | None = None,
        conflicting_permission: str | None = None,
    ) -> SoDDecision:
        return cls(
            allowed=False,
            reason=reason,
            rule_code=rule_code,
            permission_attempted=permission_attempted,
            conflicting_permission=conflicting_permission,
        )


@dataclass(frozen=True)
class SoDConflict:
    """A forbidden permission pair hit by an attempted permission."""

    permission_attempted: str
    conflicting_permission: str
    source: str  # "held" or "exercised"
    description: str = ""


@dataclass(frozen=True)
class _TrailRule:
    fields: tuple[str, ...]
    rule_code: str
    reason: str


# =========================================================================
# Built-in rule tables
# =========================================================================

# Step 1: creator vs checker.  Waived when the tenant allows self-posting.
OWNERSHIP_RULES: dict[str, _TrailRule] = {
    "APPROVE": _TrailRule(("created_by_id",), "SOD_MAKER_CANNOT_APPROVE", "Creator cannot approve"),
    "POST": _TrailRule(("created_by_id",), "SOD_MAKER_CANNOT_POST", "Creator cannot post"),
    "REVIEW": _TrailRule(("created_by_id",), "SOD_MAKER_CANNOT_REVIEW", "Creator cannot review"),
    "AR_RECEIPT_POST": _TrailRule(
        ("created_by_id",),
        "SOD_AR_RECEIPT_SELF_POST_DISABLED",
        "Posting blocked: you cannot post a receipt you prepared",
    ),
}

_GL_PREPARER_FIELDS = ("created_by_id", "submitted_by_id", "reversal_initiated_by_id")

# Step 2: per-action lifecycle rules.  Never waived.
LIFECYCLE_RULES: dict[str, tuple[_TrailRule, ...]] = {
    "POST": (
        _TrailRule(("approved_by_id",), "SOD_APPROVER_CANNOT_POST", "Approver cannot post"),
    ),
    "REVERSE": (
        # Every document type gets the GL_JOURNAL_REVERSE creator rule.
        _TrailRule(("created_by_id",), "SOD_CREATOR_CANNOT_REVERSE", "Creator cannot reverse"),
    ),
    "VOID": (
        _TrailRule(("posted_by_id",), "SOD_POSTER_CANNOT_VOID", "Poster cannot void"),
    ),
    "GL_JOURNAL_REVIEW": (
        _TrailRule(
            _GL_PREPARER_FIELDS,
            "SOD_GL_REVIEW_CONFLICT",
            "You cannot review a journal you prepared, submitted, or initiated for reversal.",
        ),
    ),
    "GL_JOURNAL_REJECT": (
        _TrailRule(
            _GL_PREPARER_FIELDS,
            "SOD_GL_REJECT_CONFLICT",
            "You cannot reject a journal you prepared, submitted, or initiated for reversal.",
        ),
    ),
    "GL_JOURNAL_POST": (
        _TrailRule(
            ("reversal_initiated_by_id",),
            "SOD_GL_POST_REVERSAL_INITIATOR_CONFLICT",
            "Posting blocked by Segregation of Duties (SoD)",
        ),
        _TrailRule(
            ("created_by_id",),
            "SOD_GL_POST_CREATED_BY_CONFLICT",
            "Posting blocked by Segregation of Duties (SoD)",
        ),
        _TrailRule(
            ("reviewed_by_id",),
            "SOD_GL_POST_REVIEWED_BY_CONFLICT",
            "Posting blocked by Segregation of Duties (SoD)",
        ),
    ),
    "GL_JOURNAL_RETURN_TO_REVIEW": (
        _TrailRule(
            ("created_by_id",),
            "SOD_GL_RETURN_TO_REVIEW_CREATED_BY_CONFLICT",
            "Return blocked by Segregation of Duties (SoD)",
        ),
        _TrailRule(
            ("reviewed_by_id",),
            "SOD_GL_RETURN_TO_REVIEW_REVIEWED_BY_CONFLICT",
            "Return blocked by Segregation of Duties (SoD)",
        ),
    ),
    "GL_JOURNAL_REVERSE": (
        _TrailRule(
            ("created_by_id",),
            "SOD_GL_REVERSE_CREATED_BY_CONFLICT",
            "You cannot reverse a journal you prepared.",
        ),
    ),
    "PERIOD_CORRECT_POSTED": (
        _TrailRule(
            ("created_by_id",),
            "SOD_PERIOD_CREATOR_CORRECT_POSTED",
            "Period creator cannot correct a period that has posted journals",
        ),
    ),
}


# =========================================================================
# Evaluation
# =========================================================================


def _normalize_id(value: object) -> str | None:
    if value is None:
        return None
    text = str(value)
    return text or None


def _first_trail_hit(
    rule: _TrailRule, trail: dict[str, str | None], actor: str
) -> bool:
    return any(trail.get(name) == actor for name in rule.fields)


def require_sod_separation(
    label: str,
    a_user_id: str | None,
    b_user_id: str | None,
    rule_code: str = "SOD_SEPARATION_REQUIRED",
) -> None:
    """
    Two roles on one document must be held by different users.

    A no-op while either side is still empty.

    Raises:
        SoDViolationError: both ids populated and equal.
    """
    a = _normalize_id(a_user_id)
    b = _normalize_id(b_user_id)
    if not a or not b:
        return
    if a == b:
        raise SoDViolationError(rule_code, f"{label}: users must be different")


def check_separation(
    rule: SeparationRule, trail: dict[str, str | None]
) -> SoDDecision:
    """Decision form of ``require_sod_separation`` for a configured rule."""
    a = trail.get(rule.field_a)
    b = trail.get(rule.field_b)
    if a and b and a == b:
        return SoDDecision.deny(rule.rule_code, f"{rule.label}: users must be different")
    return SoDDecision.allow()


def detect_sod_conflict_from_rules(
    required_permissions: Iterable[str],
    user_permission_codes: Iterable[str],
    rules: Iterable[SoDRule],
    *,
    exercised_permissions: Iterable[ExercisedPermission] = (),
    actor_id: str | None = None,
) -> SoDConflict | None:
    """
    Scan forbidden permission pairs for the permissions being exercised.

    For each attempted permission A and each rule pairing A with B:
      - the actor currently holding B is a conflict;
      - the actor having already exercised B on this document is a
        conflict, even if B has since been removed from their role.

    Returns:
        The first conflict found, or None.
    """
    held = frozenset(user_permission_codes)
    rules = tuple(rules)
    actor = _normalize_id(actor_id)
    exercised_by_actor = frozenset(
        e.permission
        for e in exercised_permissions
        if actor is not None and _normalize_id(e.actor_id) == actor
    )

    for attempted in required_permissions:
        for rule in rules:
            other = rule.counterpart(attempted)
            if other is None or other == attempted:
                continue
            if other in held:
                return SoDConflict(attempted, other, "held", rule.description)
            if other in exercised_by_actor:
                return SoDConflict(attempted, other, "exercised", rule.description)
    return None


def evaluate_sod(
    ctx: SoDContext,
    *,
    rules: Iterable[SoDRule] = (),
    separation_rules: Iterable[SeparationRule] = (),
) -> SoDDecision:
    """
    Decide whether ``ctx.actor_user_id`` may perform ``ctx.action``.

    Postconditions:
        - Returns ``SoDDecision(allowed=True)`` when no rule matches.
        - Otherwise returns the FIRST violation with ``rule_code`` and
          ``reason`` populated.
    """
    actor = _normalize_id(ctx.actor_user_id)
    action = (ctx.action or "").strip()

    if not actor:
        return SoDDecision.deny("SOD_CONTEXT_MISSING", "Missing actorUserId")

    trail = ctx.trail()

    # Step 1: ownership
    ownership = OWNERSHIP_RULES.get(action)
    if ownership is not None and not ctx.allow_self_posting:
        if _first_trail_hit(ownership, trail, actor):
            return SoDDecision.deny(ownership.rule_code, ownership.reason)

    # Step 2: lifecycle separation
    for rule in LIFECYCLE_RULES.get(action, ()):
        if _first_trail_hit(rule, trail, actor):
            return SoDDecision.deny(rule.rule_code, rule.reason)

    if action == "PERIOD_CLOSE_APPROVE":
        completed = {_normalize_id(x) for x in ctx.checklist_completed_by_ids}
        if actor in completed:
            return SoDDecision.deny(
                "SOD_PERIOD_CLOSE_CHECKLIST_CONFLICT",
                "User who completed checklist items cannot close the accounting period",
            )

    prospective = ctx.prospective_trail()
    for separation in separation_rules:
        decision = check_separation(separation, prospective)
        if not decision.allowed:
            return decision

    # Step 3: forbidden permission pairs
    conflict = detect_sod_conflict_from_rules(
        ctx.attempted_permissions,
        ctx.actor_permission_codes,
        rules,
        exercised_permissions=ctx.exercised_permissions,
        actor_id=actor,
    )
    if conflict is not None:
        how = "holds" if conflict.source == "held" else "already exercised"
        return SoDDecision.deny(
            "SOD_PERMISSION_CONFLICT",
            f"{conflict.permission_attempted} conflicts with "
            f"{conflict.conflicting_permission}, which the actor {how}",
            permission_attempted=conflict.permission_attempted,
            conflicting_permission=conflict.conflicting_permission,
        )

    return SoDDecision.allow()


def require_sod(decision: SoDDecision, action: str | None = None) -> None:
    """
    Raises:
        SoDViolationError: when ``decision.allowed`` is False.
    """
    if decision.allowed:
        return
    raise SoDViolationError(
        rule_code=decision.rule_code or "SOD_VIOLATION",
        reason=decision.reason or "Segregation of Duties conflict",
        action=action,
        conflicting_permission=decision.conflicting_permission,
    )
