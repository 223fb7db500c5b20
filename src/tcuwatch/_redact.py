"""Secret masking for configuration dumps.

The CLI logs the effective configuration at DEBUG level; broker passwords
and gateway tokens must never reach that log.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

_SECRET_KEYS: frozenset[str] = frozenset({"password", "token", "authorization", "secret", "api_key"})

REDACTED = "<redacted>"


def redact_for_log(value: Any, *, max_string: int = 512) -> Any:
    """Copy of *value* with secret entries masked and long strings cut.

    Mappings and sequences are walked recursively. Unset secrets stay
    ``None`` so the dump still shows which credentials are configured.
    """
    if isinstance(value, Mapping):
        return {
            str(key): REDACTED
            if str(key).lower() in _SECRET_KEYS and item is not None
            else redact_for_log(item, max_string=max_string)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [redact_for_log(item, max_string=max_string) for item in value]
    if isinstance(value, str) and len(value) > max_string:
        return f"{value[:max_string]}…<truncated>"
    return value
