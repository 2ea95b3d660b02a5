"""
JSON canonicalization for deterministic execution output.

Two runs of the same program over the same input must serialize to the same
bytes. This module fixes key order at every level so results, traces and
validation reports can be compared, hashed, or stored as golden files.
"""

import json
from typing import Any

from pydantic import BaseModel


def canonicalize_json(obj: Any) -> dict | list | Any:
    """
    Produce a deterministic, canonical representation of a JSON-like object.

    - Dictionary keys are sorted alphabetically at every level
    - Pydantic models are dumped by alias (camelCase) first
    - Tuples become lists; list order is preserved

    Args:
        obj: Python object (model, dict, list, or primitive) to canonicalize

    Returns:
        Canonicalized version with sorted keys at all levels

    Example:
        >>> canonicalize_json({"order": {"total": 1, "discountPercent": 10}})
        {'order': {'discountPercent': 10, 'total': 1}}

    Note:
        List order is meaningful (rule traces, action logs) and is never
        sorted here. Rule order is fixed by the scheduler.
    """
    if isinstance(obj, BaseModel):
        return canonicalize_json(obj.model_dump(mode="json", by_alias=True))

    if isinstance(obj, dict):
        return {str(k): canonicalize_json(v) for k, v in sorted(obj.items(), key=lambda kv: str(kv[0]))}

    if isinstance(obj, (list, tuple)):
        return [canonicalize_json(item) for item in obj]

    return obj


def to_canonical_json_string(obj: Any) -> str:
    """
    Convert an object to a compact canonical JSON string.

    Example:
        >>> to_canonical_json_string({"success": True, "ruleFirings": 1})
        '{"ruleFirings":1,"success":true}'
    """
    canonical = canonicalize_json(obj)
    return json.dumps(canonical, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def to_canonical_json_pretty(obj: Any) -> str:
    """
    Convert an object to an indented canonical JSON string.

    Useful for rendering traces in logs or golden files.
    """
    canonical = canonicalize_json(obj)
    return json.dumps(canonical, sort_keys=True, indent=2, ensure_ascii=False)
