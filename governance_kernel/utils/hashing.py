"""
Deterministic hashing utilities.

All hashing in the governance kernel must be deterministic and reproducible.
``build_deterministic_id`` gives repeated identical requests (e.g. "trial
balance for this date range") the same entity id so they can be treated as
idempotent: same logical parameters, same id, regardless of key insertion
order.
"""

import hashlib
import json
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

# Stand-in for None / missing values inside canonical payloads.
NULL_SENTINEL = "__null__"

_ENTITY_ID_HEX_LENGTH = 32


def _json_serializer(obj: Any) -> Any:
    """
    Custom JSON serializer for types not natively supported.

    Raises:
        TypeError: If object type is not supported.
    """
    if isinstance(obj, Decimal):
        # Normalize so 1.50 and 1.5 hash alike
        return str(obj.normalize())
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, UUID):
        return str(obj)
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, bytes):
        return obj.hex()

    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def canonicalize_json(data: dict | list | Any) -> str:
    """
    Convert data to canonical JSON string.

    - Keys are sorted alphabetically
    - No whitespace
    - Consistent handling of special types (Decimal, datetime, UUID)
    """
    return json.dumps(
        data,
        sort_keys=True,
        separators=(",", ":"),
        default=_json_serializer,
    )


def hash_payload(payload: dict) -> str:
    """Compute the hex SHA-256 hash (64 characters) of a payload."""
    canonical = canonicalize_json(payload)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def normalize_params(value: Any) -> Any:
    """
    Recursively normalize a parameter tree for canonical serialization.

    - ``None`` becomes ``NULL_SENTINEL`` (so an explicit null and a missing
      optional filter passed as None hash alike)
    - Mapping keys are stringified; ordering is left to ``sort_keys``
    - Lists and tuples keep their order
    - Sets and frozensets are sorted, since they carry no order
    """
    if value is None:
        return NULL_SENTINEL
    if isinstance(value, dict):
        return {str(k): normalize_params(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [normalize_params(v) for v in value]
    if isinstance(value, (set, frozenset)):
        items = [normalize_params(v) for v in value]
        return sorted(items, key=canonicalize_json)
    return value


@dataclass(frozen=True)
class DeterministicId:
    """Stable identity of a report request or audit entity."""

    entity_id: str
    canonical_string: str
    hash: str


def build_deterministic_id(
    params: dict[str, Any],
    *,
    namespace: str = "report",
) -> DeterministicId:
    """
    Build a stable identifier from an arbitrary parameter object.

    Identical logical inputs always yield the same ``entity_id``; changing
    any value changes the hash.  The namespace is folded into the hash so
    a report id can never collide with, say, a journal id built from the
    same parameters.

    Args:
        params: Parameter tree (dicts, lists, scalars, Decimal, dates, UUIDs).
        namespace: Prefix of the resulting entity id.

    Returns:
        DeterministicId with ``entity_id`` = ``<namespace>_<32 hex chars>``.
    """
    canonical = canonicalize_json(
        {"namespace": namespace, "params": normalize_params(params)}
    )
    digest = hashlib.sha256(canonical.encode("utf-8")).hexdigest()
    return DeterministicId(
        entity_id=f"{namespace}_{digest[:_ENTITY_ID_HEX_LENGTH]}",
        canonical_string=canonical,
        hash=digest,
    )
