"""Sensitive-field redaction for audit records.

Provides ``redact_sensitive_fields``, a recursive, depth-limited function
that replaces the values of keys holding secret material.
"""

from __future__ import annotations

_MAX_REDACT_DEPTH = 20

REDACTION_TOKEN = "***REDACTED***"

# Exact key names (case-insensitive). Substring matching would also hide
# identifiers such as ``secretId`` that the audit trail needs to keep.
SENSITIVE_KEYS: frozenset[str] = frozenset(
    {
        "value",
        "password",
        "secret",
        "certificate",
    }
)


def redact_sensitive_fields(
    value: object,
    *,
    mask: str = REDACTION_TOKEN,
    depth: int = 0,
    max_depth: int = _MAX_REDACT_DEPTH,
) -> object:
    """Recursively replace sensitive values in dicts/lists.

    When ``max_depth`` is exceeded the entire sub-tree is replaced with *mask*.
    """
    if depth >= max_depth:
        return mask
    if isinstance(value, dict):
        redacted: dict[object, object] = {}
        for key, val in value.items():
            if isinstance(key, str) and key.lower() in SENSITIVE_KEYS:
                redacted[key] = mask
            else:
                redacted[key] = redact_sensitive_fields(
                    val, mask=mask, depth=depth + 1, max_depth=max_depth,
                )
        return redacted
    if isinstance(value, list):
        return [
            redact_sensitive_fields(
                item, mask=mask, depth=depth + 1, max_depth=max_depth,
            )
            for item in value
        ]
    return value
