"""
governance_config -- single public entrypoint for tenant governance rules.

Responsibility:
    Provides the ONLY way to obtain a tenant's ``GovernancePolicy`` at
    runtime through ``get_governance_policy()``.  YAML loading, validation
    and bridging are internal steps of that call.

Architecture position:
    Configuration -- YAML-driven policy pipeline.  This package sits above
    ``governance_kernel``.  The kernel MUST NEVER import from
    ``governance_config``; bridges in this package translate the parsed
    source artifact into kernel policy objects.

Failure modes:
    - ``FileNotFoundError`` -- neither ``<tenant>.yaml`` nor
      ``default.yaml`` exists in the sets directory.
    - ``GovernanceConfigError`` -- the configuration failed validation.
    - ``KeyError`` / ``ValueError`` / ``yaml.YAMLError`` -- parse errors.

Audit relevance:
    Every successful call emits a ``GOVERNANCE_CONFIG_TRACE`` log entry
    with the tenant, source file, version and checksum: the anchor tying
    every governance decision to the exact rule set that produced it.
"""

from __future__ import annotations

import logging
from pathlib import Path

from governance_config.bridges import build_governance_policy
from governance_config.loader import load_tenant_governance
from governance_config.validator import GovernanceConfigError, require_valid
from governance_kernel.domain.policy import GovernancePolicy

_logger = logging.getLogger("governance_kernel.config")

_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"
_DEFAULT_SET = "default"


def get_governance_policy(
    tenant_id: str,
    config_dir: Path | None = None,
) -> GovernancePolicy:
    """The ONLY public configuration entrypoint.

    Looks for ``<tenant_id>.yaml`` in the sets directory and falls back to
    ``default.yaml``.  The returned policy always carries ``tenant_id``.

    Args:
        tenant_id: Tenant whose rules are requested.
        config_dir: Override path to the sets directory.  Defaults to
            governance_config/sets/.

    Raises:
        FileNotFoundError: no tenant or default set found.
        GovernanceConfigError: the set failed validation.
    """
    sets_dir = Path(config_dir) if config_dir is not None else _DEFAULT_CONFIG_DIR
    path = _find_config_file(sets_dir, tenant_id)

    config = load_tenant_governance(path)
    validation = require_valid(config)
    policy = build_governance_policy(config, tenant_id=tenant_id)

    _logger.info(
        "GOVERNANCE_CONFIG_TRACE",
        extra={
            "trace_type": "GOVERNANCE_CONFIG_TRACE",
            "tenant_id": tenant_id,
            "config_tenant_id": config.tenant_id,
            "config_file": path.name,
            "config_version": config.version,
            "checksum": config.checksum,
            "document_type_count": len(config.document_types),
            "sod_rule_count": len(config.sod_rules),
            "separation_rule_count": len(config.separation_rules),
            "warning_count": len(validation.warnings),
        },
    )
    return policy


def _find_config_file(sets_dir: Path, tenant_id: str) -> Path:
    if not sets_dir.is_dir():
        raise FileNotFoundError(f"Governance sets directory not found: {sets_dir}")
    candidate = sets_dir / f"{tenant_id}.yaml"
    if candidate.is_file():
        return candidate
    default = sets_dir / f"{_DEFAULT_SET}.yaml"
    if default.is_file():
        return default
    raise FileNotFoundError(
        f"No governance configuration for tenant '{tenant_id}' and no "
        f"{_DEFAULT_SET}.yaml in {sets_dir}"
    )


__all__ = ["GovernanceConfigError", "get_governance_policy"]
