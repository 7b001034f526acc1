"""
Canonical serialization for deterministic hashing.

Every producer and every verifier of an entry hash must go through these
functions so that the hashed bytes are identical across processes and
implementations.
"""

import json
import math
from typing import Any

from .errors import CanonicalizationError


def canonicalize(obj: Any) -> Any:
    """
    Convert arbitrary nested dict/list to canonical form.

    Rules:
    - dict keys sorted alphabetically (keys must be strings)
    - tuples converted to lists
    - integral floats rendered as integers (1.0 -> 1)
    - NaN and Infinity rejected
    - anything that is not JSON-representable rejected
    """
    if isinstance(obj, dict):
        for k in obj.keys():
            if not isinstance(k, str):
                raise CanonicalizationError(f"non-string key in mapping: {k!r}")
        return {k: canonicalize(obj[k]) for k in sorted(obj.keys())}
    if isinstance(obj, (list, tuple)):
        return [canonicalize(x) for x in obj]
    if isinstance(obj, bool) or obj is None or isinstance(obj, str):
        return obj
    if isinstance(obj, int):
        return obj
    if isinstance(obj, float):
        if math.isnan(obj) or math.isinf(obj):
            raise CanonicalizationError("NaN and Infinity cannot be hashed")
        if obj.is_integer():
            return int(obj)
        return obj
    raise CanonicalizationError(f"value of type {type(obj).__name__} is not JSON-serializable")


def canonical_json_bytes(obj: Any) -> bytes:
    """
    Deterministic JSON bytes for hashing.

    Guarantees:
    - sort_keys=True (secondary safety)
    - separators remove whitespace
    - ensure_ascii=False keeps UTF-8 stable
    - canonical preprocessing via canonicalize()

    Returns:
        UTF-8 encoded JSON bytes
    """
    canon = canonicalize(obj)
    s = json.dumps(canon, sort_keys=True, separators=(",", ":"), ensure_ascii=False, allow_nan=False)
    return s.encode("utf-8")


def canonical_json_str(obj: Any) -> str:
    """
    Deterministic JSON string (for display or storage).

    Same guarantees as canonical_json_bytes but returns string.
    """
    return canonical_json_bytes(obj).decode("utf-8")
