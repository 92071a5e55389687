"""
Configuration Validator (``governance_config.validator``).

Responsibility
--------------
Validates a ``TenantGovernanceDef`` before it is bridged into a kernel
``GovernancePolicy``.

Invariants enforced
-------------------
* SoD pairs are unique (unordered) and never pair a permission with itself.
* Separation rules name known actor-trail fields, two different ones.
* Document-type permissions and SoD action maps only use lifecycle actions.
* Every configured action lists at least one permission code.
* Tax tolerance is non-negative.

Failure modes
-------------
* Validation errors (``ConfigValidationResult.errors``)  -> the
  configuration MUST NOT be used; ``require_valid`` raises
  ``GovernanceConfigError``.
* Validation warnings  -> usable, but should be reviewed (e.g. a document
  type that can never be posted because POST has no permission code).
"""

from __future__ import annotations

from dataclasses import dataclass, field

from governance_config.schema import TenantGovernanceDef
from governance_kernel.domain.policy import LifecycleAction
from governance_kernel.domain.sod import TRAIL_FIELDS

_ACTIONS = frozenset(a.value for a in LifecycleAction)


class GovernanceConfigError(ValueError):
    """A governance configuration failed validation."""

    code: str = "GOVERNANCE_CONFIG_INVALID"

    def __init__(self, tenant_id: str, errors: list[str]):
        self.tenant_id = tenant_id
        self.errors = list(errors)
        super().__init__(
            f"Governance configuration for {tenant_id} failed validation:\n"
            + "\n".join(f"  - {e}" for e in self.errors)
        )


@dataclass
class ConfigValidationResult:
    """
    Result of configuration validation.

    Contract
    --------
    * ``is_valid`` returns ``True`` only when ``errors`` is empty.
    * Warnings do not block use but should be reviewed.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


def validate_governance(config: TenantGovernanceDef) -> ConfigValidationResult:
    """Run every check and collect all findings (never raises)."""
    result = ConfigValidationResult()
    _validate_settings(config, result)
    _validate_sod_rules(config, result)
    _validate_separation_rules(config, result)
    _validate_document_types(config, result)
    return result


def require_valid(config: TenantGovernanceDef) -> ConfigValidationResult:
    """
    Raises:
        GovernanceConfigError: the configuration has errors.
    """
    result = validate_governance(config)
    if not result.is_valid:
        raise GovernanceConfigError(config.tenant_id, result.errors)
    return result


def _validate_settings(config: TenantGovernanceDef, result: ConfigValidationResult) -> None:
    if config.settings.tax_tolerance < 0:
        result.add_error(
            f"settings.tax_tolerance must be non-negative, got {config.settings.tax_tolerance}"
        )


def _validate_sod_rules(config: TenantGovernanceDef, result: ConfigValidationResult) -> None:
    seen: set[frozenset[str]] = set()
    for rule in config.sod_rules:
        if rule.permission_a == rule.permission_b:
            result.add_error(f"SoD rule pairs {rule.permission_a} with itself")
            continue
        key = frozenset((rule.permission_a, rule.permission_b))
        if key in seen:
            result.add_error(
                f"Duplicate SoD rule: {rule.permission_a} / {rule.permission_b}"
            )
        seen.add(key)


def _validate_separation_rules(
    config: TenantGovernanceDef, result: ConfigValidationResult
) -> None:
    for rule in config.separation_rules:
        for name in (rule.field_a, rule.field_b):
            if name not in TRAIL_FIELDS:
                result.add_error(
                    f"Separation rule '{rule.label}' references unknown field {name}"
                )
        if rule.field_a == rule.field_b:
            result.add_error(
                f"Separation rule '{rule.label}' compares {rule.field_a} with itself"
            )


def _validate_document_types(
    config: TenantGovernanceDef, result: ConfigValidationResult
) -> None:
    seen: set[str] = set()
    for doc in config.document_types:
        if doc.document_type in seen:
            result.add_error(f"Duplicate document type: {doc.document_type}")
        seen.add(doc.document_type)

        configured = set()
        for action, codes in doc.permissions:
            if action not in _ACTIONS:
                result.add_error(
                    f"{doc.document_type}: unknown lifecycle action {action} in permissions"
                )
                continue
            if not codes:
                result.add_error(f"{doc.document_type}: {action} lists no permission codes")
            configured.add(action)

        for action, _ in doc.sod_actions:
            if action not in _ACTIONS:
                result.add_error(
                    f"{doc.document_type}: unknown lifecycle action {action} in sod_actions"
                )

        for action in sorted(_ACTIONS - configured):
            result.add_warning(
                f"{doc.document_type}: {action} has no permission code and will always be denied"
            )

        if doc.tax_checked and not doc.tax_source_type:
            result.add_warning(f"{doc.document_type}: tax_checked without tax_source_type")
