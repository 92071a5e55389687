"""
Config -> Kernel Bridges.

Functions that convert ``TenantGovernanceDef`` artifacts into kernel
policy objects.  They live in governance_config (the producer) because
the kernel must NEVER import governance_config.

Usage:
    from governance_config.bridges import build_governance_policy

    config = load_tenant_governance(path)
    policy = build_governance_policy(config)
    guard = LifecycleGuard(policy)
"""

from __future__ import annotations

from governance_config.schema import (
    DocumentTypeDef,
    SeparationRuleDef,
    SoDRuleDef,
    TenantGovernanceDef,
)
from governance_kernel.domain.policy import (
    DocumentTypePolicy,
    GovernancePolicy,
    LifecycleAction,
)
from governance_kernel.domain.sod import SeparationRule, SoDRule


def build_sod_rule(rule: SoDRuleDef) -> SoDRule:
    return SoDRule(
        forbidden_permission_a=rule.permission_a,
        forbidden_permission_b=rule.permission_b,
        description=rule.description,
    )


def build_separation_rule(rule: SeparationRuleDef) -> SeparationRule:
    return SeparationRule(
        label=rule.label,
        field_a=rule.field_a,
        field_b=rule.field_b,
        rule_code=rule.rule_code,
    )


def build_document_type_policy(doc: DocumentTypeDef) -> DocumentTypePolicy:
    return DocumentTypePolicy(
        document_type=doc.document_type,
        label=doc.label,
        permissions={LifecycleAction(action): codes for action, codes in doc.permissions},
        sod_actions={LifecycleAction(action): code for action, code in doc.sod_actions},
        ledger_affecting=doc.ledger_affecting,
        tax_checked=doc.tax_checked,
        approval_stamps_review=doc.approval_stamps_review,
        tax_source_type=doc.tax_source_type,
    )


def build_governance_policy(
    config: TenantGovernanceDef,
    tenant_id: str | None = None,
) -> GovernancePolicy:
    """
    Build the kernel policy for ``config``.

    ``tenant_id`` overrides the file's tenant when a tenant falls back to
    the shared default set.
    """
    return GovernancePolicy(
        tenant_id=tenant_id or config.tenant_id,
        document_types={
            doc.document_type: build_document_type_policy(doc)
            for doc in config.document_types
        },
        sod_rules=tuple(build_sod_rule(r) for r in config.sod_rules),
        separation_rules=tuple(build_separation_rule(r) for r in config.separation_rules),
        allow_self_posting=config.settings.allow_self_posting,
        tax_tolerance=config.settings.tax_tolerance,
        period_gated_creation=config.settings.period_gated_creation,
        config_checksum=config.checksum,
    )
