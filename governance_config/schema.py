"""
TenantGovernanceDef schema.

Defines the human-authored, reviewable source artifact for a tenant's
governance rules.  YAML files are parsed into these types by the loader,
checked by the validator and bridged into kernel ``GovernancePolicy``
objects by ``bridges``.

Key distinction:
  TenantGovernanceDef = source artifact (human-authored, versioned)
  GovernancePolicy    = runtime artifact (kernel value object)
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

# ---------------------------------------------------------------------------
# Tenant switches
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class GovernanceSettingsDef:
    """Tenant-wide switches."""

    allow_self_posting: bool = False
    tax_tolerance: Decimal = Decimal("0.01")
    period_gated_creation: bool = False


# ---------------------------------------------------------------------------
# SoD rules
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SoDRuleDef:
    """Forbidden permission pair."""

    permission_a: str
    permission_b: str
    description: str = ""


@dataclass(frozen=True)
class SeparationRuleDef:
    """Two actor-trail fields that must hold different users."""

    label: str
    field_a: str
    field_b: str
    rule_code: str = "SOD_SEPARATION_REQUIRED"


# ---------------------------------------------------------------------------
# Document types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DocumentTypeDef:
    """
    Lifecycle wiring of one document type.

    ``permissions`` is a tuple of (action, codes) pairs; several codes mean
    any one of them authorises the action.  ``sod_actions`` is a tuple of
    (action, sod_action_code) pairs.
    """

    document_type: str
    label: str
    permissions: tuple[tuple[str, tuple[str, ...]], ...] = ()
    sod_actions: tuple[tuple[str, str], ...] = ()
    ledger_affecting: bool = True
    tax_checked: bool = False
    approval_stamps_review: bool = False
    tax_source_type: str | None = None


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TenantGovernanceDef:
    """One tenant's complete governance configuration."""

    tenant_id: str
    version: int
    settings: GovernanceSettingsDef
    sod_rules: tuple[SoDRuleDef, ...] = ()
    separation_rules: tuple[SeparationRuleDef, ...] = ()
    document_types: tuple[DocumentTypeDef, ...] = ()
    description: str = ""
    checksum: str = ""
