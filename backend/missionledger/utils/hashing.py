"""Content hashing for evidence items and export bundles

Two serialization schemes are supported:

``sha256-canonical-json``
    Keys sorted at every depth, compact separators, UTF-8 output. Two payloads
    that are equal as JSON values always hash the same.

``sha256-json-insertion-order``
    Keys kept in insertion order with compact separators, which is byte-for-byte
    what ``JSON.stringify`` produces. Semantically equal payloads with different
    key order hash differently. Only used for compatibility with imported data.

The scheme is stored on every evidence item, so verification never has to guess.
"""
import hashlib
import json
from typing import Any

from ..domain.errors import ValidationError

CANONICAL_SCHEME = "sha256-canonical-json"
LEGACY_SCHEME = "sha256-json-insertion-order"

SCHEMES_BY_SETTING = {
    "canonical": CANONICAL_SCHEME,
    "legacy": LEGACY_SCHEME,
}


def serialize(content: Any, scheme: str = CANONICAL_SCHEME) -> bytes:
    """Serialize a JSON-compatible value to the bytes that get hashed"""
    if scheme not in (CANONICAL_SCHEME, LEGACY_SCHEME):
        raise ValidationError(
            f"Unknown hash scheme: {scheme}",
            details={"hash_scheme": scheme}
        )
    try:
        text = json.dumps(
            content,
            sort_keys=scheme == CANONICAL_SCHEME,
            separators=(",", ":"),
            ensure_ascii=False,
            allow_nan=False,
        )
    except (TypeError, ValueError) as e:
        raise ValidationError(
            "Content must be a JSON-compatible value",
            details={"reason": str(e)}
        )
    return text.encode("utf-8")


def compute_content_hash(content: Any, scheme: str = CANONICAL_SCHEME) -> str:
    """Hex SHA-256 digest of the serialized content"""
    return hashlib.sha256(serialize(content, scheme)).hexdigest()


def scheme_for_setting(value: str) -> str:
    """Resolve the ``evidence_hash_scheme`` setting to a scheme name"""
    try:
        return SCHEMES_BY_SETTING[value.lower()]
    except KeyError:
        raise ValidationError(
            f"Unknown evidence_hash_scheme setting: {value}",
            details={"allowed": sorted(SCHEMES_BY_SETTING)}
        )
