"""Utility functions for the governance kernel."""

from governance_kernel.utils.hashing import (
    DeterministicId,
    build_deterministic_id,
    canonicalize_json,
    hash_payload,
)

__all__ = [
    "DeterministicId",
    "build_deterministic_id",
    "canonicalize_json",
    "hash_payload",
]
