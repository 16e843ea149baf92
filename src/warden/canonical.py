"""
canonical.py — Canonical encoding and the hash primitive

Every chain link, receipt and block seal in the package is computed as
digest(... canonicalize(record) ...). Two records that are structurally
equal must hash identically whatever order their keys were inserted in.
"""

from __future__ import annotations
from enum import Enum
from typing import Any, Union
import hashlib
import hmac
import json

GENESIS_HASH = "0" * 64


def _encode_default(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, (set, frozenset)):
        raise TypeError("sets have no canonical order; convert to a sorted list")
    raise TypeError(f"Object of type {type(value).__name__} is not canonicalizable")


def canonicalize(value: Any) -> str:
    """
    Serialize value with object keys sorted at every depth.

    Arrays (lists and tuples) keep their order. Enums serialize as their
    value, objects exposing to_dict() through it. NaN and infinities are
    rejected: they have no stable JSON form.
    """
    return json.dumps(
        value,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
        default=_encode_default,
    )


def digest(data: Union[str, bytes]) -> str:
    """SHA-256 hex digest (64 chars)."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(data).hexdigest()


def digest_record(value: Any) -> str:
    """digest(canonicalize(value))."""
    return digest(canonicalize(value))


def constant_time_equals(a: str, b: str) -> bool:
    """Constant-time string comparison for hash checks."""
    return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))
