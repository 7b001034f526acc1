"""
Opaque pagination cursors.

A cursor is URL-safe base64 over canonical JSON holding the index scanned,
the sort order, a fingerprint of the filter and the last consumed storage
position. Callers must treat it as opaque.
"""

import base64
import binascii
import hashlib
import json
from dataclasses import dataclass
from typing import Any, Dict

from ..core.canonical import canonical_json_bytes
from ..core.errors import ValidationError

CURSOR_VERSION = 1


@dataclass(frozen=True)
class Cursor:
    index: str
    sort: str
    fingerprint: str
    position: Dict[str, Any]


def fingerprint(filter_dict: Dict[str, Any]) -> str:
    return hashlib.sha256(canonical_json_bytes(filter_dict)).hexdigest()[:16]


def encode_cursor(cursor: Cursor) -> str:
    payload = {
        "v": CURSOR_VERSION,
        "i": cursor.index,
        "s": cursor.sort,
        "f": cursor.fingerprint,
        "p": cursor.position,
    }
    return base64.urlsafe_b64encode(canonical_json_bytes(payload)).decode("ascii").rstrip("=")


def decode_cursor(token: str) -> Cursor:
    """
    Raises:
        ValidationError: If the token is malformed, its position is not a flat
            store position, or it is from another cursor version
    """
    try:
        padded = token + "=" * (-len(token) % 4)
        data = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")))
    except (binascii.Error, ValueError, UnicodeError) as e:
        raise ValidationError("malformed cursor") from e
    if not isinstance(data, dict) or data.get("v") != CURSOR_VERSION:
        raise ValidationError("unsupported cursor")
    try:
        cursor = Cursor(
            index=data["i"],
            sort=data["s"],
            fingerprint=data["f"],
            position=dict(data["p"]),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise ValidationError("malformed cursor") from e
    if not _valid_position(cursor.position):
        raise ValidationError("malformed cursor")
    return cursor


def _valid_position(position: Dict[str, Any]) -> bool:
    # Store positions are flat: string keys, string or integer values
    if not position:
        return False
    return all(
        isinstance(k, str) and isinstance(v, (str, int)) and not isinstance(v, bool)
        for k, v in position.items()
    )
