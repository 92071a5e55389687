"""
Governance policy -- the explicit, per-tenant configuration of the kernel.

Responsibility:
    Bundles everything one evaluation needs to know about a tenant: the
    per-document-type lifecycle policies (permission codes per action,
    SoD action codes, ledger/tax flags), the forbidden permission pairs,
    the pairwise separation rules and the tenant switches.

Architecture position:
    Kernel > Domain -- pure value objects.  Built by
    ``governance_config.bridges`` from YAML, or directly in code/tests.
    Passed into every evaluation; never held in a module-level singleton.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Mapping

from governance_kernel.domain.sod import SeparationRule, SoDRule
from governance_kernel.domain.tax import DEFAULT_TAX_TOLERANCE
from governance_kernel.exceptions import UnknownDocumentTypeError


class LifecycleAction(str, Enum):
    """Actions that drive the shared document lifecycle."""

    SUBMIT = "SUBMIT"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    RETURN = "RETURN"
    POST = "POST"
    REVERSE = "REVERSE"


@dataclass(frozen=True)
class DocumentTypePolicy:
    """
    How one document type plugs into the shared lifecycle.

    ``permissions`` maps an action to the codes that authorise it: a single
    code is required outright, several codes mean any one of them suffices.
    ``sod_actions`` maps an action to the SoD action code evaluated for it
    (defaults to the action name, e.g. ``APPROVE``).
    """

    document_type: str
    label: str
    permissions: Mapping[LifecycleAction, tuple[str, ...]] = field(default_factory=dict)
    sod_actions: Mapping[LifecycleAction, str] = field(default_factory=dict)
    ledger_affecting: bool = True
    tax_checked: bool = False
    approval_stamps_review: bool = False
    tax_source_type: str | None = None

    def permissions_for(self, action: LifecycleAction) -> tuple[str, ...]:
        return tuple(self.permissions.get(action, ()))

    def sod_action_for(self, action: LifecycleAction) -> str:
        return self.sod_actions.get(action, action.value)


@dataclass(frozen=True)
class GovernancePolicy:
    """Tenant-scoped rule set, immutable for the duration of an evaluation."""

    tenant_id: str
    document_types: Mapping[str, DocumentTypePolicy] = field(default_factory=dict)
    sod_rules: tuple[SoDRule, ...] = ()
    separation_rules: tuple[SeparationRule, ...] = ()
    allow_self_posting: bool = False
    tax_tolerance: Decimal = DEFAULT_TAX_TOLERANCE
    period_gated_creation: bool = False
    config_checksum: str | None = None

    def policy_for(self, document_type: str) -> DocumentTypePolicy:
        """
        Raises:
            UnknownDocumentTypeError: no policy registered for the type.
        """
        policy = self.document_types.get(document_type)
        if policy is None:
            raise UnknownDocumentTypeError(document_type)
        return policy
