"""
Permission Evaluator -- does the actor hold permission P (or any of a set)?

Responsibility:
    Answers permission questions against the actor's precomputed,
    read-only permission-code set.  Codes are case-sensitive and
    namespaced (e.g. ``AR_INVOICE_POST``).

Architecture position:
    Kernel > Domain -- pure, zero I/O.  The identity store resolves the
    authenticated actor; this module never mutates the snapshot.

Failure modes:
    - AccessDeniedError(missing_permission=...) from ``require_permission``
    - AccessDeniedError(missing_any_of=...) from ``require_any_permission``
    - OwnershipRequiredError from ``require_ownership`` when a non-creator acts
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from governance_kernel.exceptions import AccessDeniedError, OwnershipRequiredError


@dataclass(frozen=True)
class Actor:
    """Authenticated identity with its permission snapshot."""

    actor_id: str
    tenant_id: str | None = None
    permission_codes: frozenset[str] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        if not isinstance(self.permission_codes, frozenset):
            object.__setattr__(self, "permission_codes", frozenset(self.permission_codes))

    @classmethod
    def of(cls, actor_id: str, *codes: str, tenant_id: str | None = None) -> Actor:
        """Convenience constructor: ``Actor.of("u1", "GL_POST", "GL_VIEW")``."""
        return cls(actor_id=actor_id, tenant_id=tenant_id, permission_codes=frozenset(codes))


def has_permission(actor: Actor, code: str) -> bool:
    return code in actor.permission_codes


def has_any_permission(actor: Actor, codes: Iterable[str]) -> bool:
    return any(code in actor.permission_codes for code in codes)


def require_permission(actor: Actor, code: str) -> None:
    """
    Fail unless the actor holds ``code``.

    Raises:
        AccessDeniedError: with ``missing_permission`` set to ``code``.
    """
    if code not in actor.permission_codes:
        raise AccessDeniedError(missing_permission=code)


def require_any_permission(actor: Actor, codes: Iterable[str]) -> None:
    """
    Fail unless the actor holds at least one of ``codes``.

    Raises:
        AccessDeniedError: with ``missing_any_of`` listing every code.
    """
    codes = tuple(codes)
    if not has_any_permission(actor, codes):
        raise AccessDeniedError(missing_any_of=codes)


def require_ownership(
    created_by_id: str | None,
    actor_id: str,
    message: str | None = None,
) -> None:
    """Only the creator may perform this action (e.g. edit or delete a draft)."""
    if created_by_id != actor_id:
        raise OwnershipRequiredError(created_by_id, actor_id, message)
