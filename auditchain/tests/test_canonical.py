"""
Tests for canonical serialization.

Critical: These tests verify determinism guarantees.
"""

import pytest

from auditchain.core.canonical import canonicalize, canonical_json_bytes, canonical_json_str
from auditchain.core.errors import CanonicalizationError, ValidationError


def test_canonicalize_dict_key_order():
    """Dict key order must not affect canonical output."""
    d1 = {"z": 1, "a": 2, "m": 3}
    d2 = {"a": 2, "m": 3, "z": 1}

    assert canonicalize(d1) == canonicalize(d2)
    assert canonical_json_str(d1) == canonical_json_str(d2)


def test_canonicalize_nested():
    """Nested structures must be canonicalized recursively."""
    obj = {
        "outer": {
            "z": [3, 1, 2],
            "a": {"nested": True}
        }
    }

    canon = canonicalize(obj)

    # Keys sorted at each level, list order preserved
    assert list(canon.keys()) == ["outer"]
    assert list(canon["outer"].keys()) == ["a", "z"]
    assert canon["outer"]["z"] == [3, 1, 2]


def test_canonical_json_str_compact():
    """Same object must produce identical compact string."""
    obj = {"b": 2, "a": 1}

    assert canonical_json_str(obj) == '{"a":1,"b":2}'
    assert canonical_json_bytes(obj) == b'{"a":1,"b":2}'


def test_canonical_handles_unicode():
    """Unicode strings are kept as UTF-8, not escaped."""
    obj = {"key": "日本語"}

    s = canonical_json_str(obj)

    assert "日本語" in s
    assert canonical_json_bytes(obj) == s.encode("utf-8")


def test_integral_floats_render_as_integers():
    """1.0 and 1 must serialize identically; other floats keep their value."""
    assert canonical_json_str({"n": 1.0}) == canonical_json_str({"n": 1})
    assert canonical_json_str({"n": 1.5}) == '{"n":1.5}'


def test_tuples_become_lists():
    assert canonical_json_str({"t": (1, 2)}) == '{"t":[1,2]}'


@pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
def test_non_finite_numbers_rejected(value):
    with pytest.raises(CanonicalizationError):
        canonical_json_bytes({"n": value})


def test_non_json_values_rejected():
    """Objects without a JSON form must be rejected, not stringified."""
    with pytest.raises(CanonicalizationError):
        canonicalize({"when": object()})
    with pytest.raises(CanonicalizationError):
        canonicalize({1: "int key"})


def test_canonicalization_error_is_validation_error():
    assert issubclass(CanonicalizationError, ValidationError)
