"""
Configuration Loader (``governance_config.loader``).

Responsibility
--------------
Loads a tenant governance YAML file and parses it into typed
``governance_config.schema`` dataclass instances.  Runtime callers go
through ``governance_config.get_governance_policy()`` instead.

Invariants enforced
-------------------
* All parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; no silent defaults for required fields.
* Every parsed object is a frozen dataclass from ``schema.py``.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the raw
  document for configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Non-numeric tolerance  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from governance_config.schema import (
    DocumentTypeDef,
    GovernanceSettingsDef,
    SeparationRuleDef,
    SoDRuleDef,
    TenantGovernanceDef,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_decimal(value: Any) -> Decimal:
    if isinstance(value, bool):
        raise ValueError(f"Cannot parse decimal from {value!r}")
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"Cannot parse decimal from {value!r}") from exc


def _as_codes(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    return tuple(str(v) for v in value)


def parse_settings(data: dict[str, Any] | None) -> GovernanceSettingsDef:
    data = data or {}
    return GovernanceSettingsDef(
        allow_self_posting=bool(data.get("allow_self_posting", False)),
        tax_tolerance=parse_decimal(data.get("tax_tolerance", "0.01")),
        period_gated_creation=bool(data.get("period_gated_creation", False)),
    )


def parse_sod_rule(data: dict[str, Any]) -> SoDRuleDef:
    return SoDRuleDef(
        permission_a=data["permission_a"],
        permission_b=data["permission_b"],
        description=data.get("description", ""),
    )


def parse_separation_rule(data: dict[str, Any]) -> SeparationRuleDef:
    return SeparationRuleDef(
        label=data["label"],
        field_a=data["field_a"],
        field_b=data["field_b"],
        rule_code=data.get("rule_code", "SOD_SEPARATION_REQUIRED"),
    )


def parse_document_type(document_type: str, data: dict[str, Any]) -> DocumentTypeDef:
    """
    Parse a ``DocumentTypeDef`` from its mapping entry.

    ``permissions`` values may be a single code or a list of codes.
    """
    permissions = tuple(
        (str(action), _as_codes(codes))
        for action, codes in (data.get("permissions") or {}).items()
    )
    sod_actions = tuple(
        (str(action), str(code))
        for action, code in (data.get("sod_actions") or {}).items()
    )
    return DocumentTypeDef(
        document_type=document_type,
        label=data.get("label", document_type),
        permissions=permissions,
        sod_actions=sod_actions,
        ledger_affecting=bool(data.get("ledger_affecting", True)),
        tax_checked=bool(data.get("tax_checked", False)),
        approval_stamps_review=bool(data.get("approval_stamps_review", False)),
        tax_source_type=data.get("tax_source_type"),
    )


def parse_tenant_governance(data: dict[str, Any]) -> TenantGovernanceDef:
    """Parse the root mapping; ``checksum`` is computed from ``data``."""
    return TenantGovernanceDef(
        tenant_id=data["tenant_id"],
        version=int(data.get("version", 1)),
        description=data.get("description", ""),
        settings=parse_settings(data.get("settings")),
        sod_rules=tuple(parse_sod_rule(r) for r in data.get("sod_rules") or ()),
        separation_rules=tuple(
            parse_separation_rule(r) for r in data.get("separation_rules") or ()
        ),
        document_types=tuple(
            parse_document_type(name, entry or {})
            for name, entry in (data.get("document_types") or {}).items()
        ),
        checksum=compute_checksum(data),
    )


def load_tenant_governance(path: Path) -> TenantGovernanceDef:
    return parse_tenant_governance(load_yaml_file(path))


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
