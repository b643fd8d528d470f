"""
Checksum helpers shared by the signature-based adapters.

Algorithms are fixed per provider; none of these are interchangeable.
"""

import hashlib
import hmac
from collections.abc import Mapping
from typing import Any
from urllib.parse import quote_plus


def sorted_values(fields: Mapping[str, Any], exclude: str) -> str:
    """Values concatenated in alphabetical key order, skipping ``exclude``."""
    return "".join(str(fields[key]) for key in sorted(fields) if key != exclude)


def sorted_query(fields: Mapping[str, Any], exclude: str) -> str:
    """``k=v&k=v`` in alphabetical key order with form encoding; empty values dropped."""
    pairs = []
    for key in sorted(fields):
        if key == exclude:
            continue
        value = fields[key]
        if value is None or str(value) == "":
            continue
        pairs.append(f"{key}={quote_plus(str(value).strip())}")
    return "&".join(pairs)


def md5_hex(message: str | bytes) -> str:
    if isinstance(message, str):
        message = message.encode()
    return hashlib.md5(message).hexdigest()


def hmac_hex(secret: str, message: str | bytes, digestmod: str) -> str:
    if isinstance(message, str):
        message = message.encode()
    return hmac.new(secret.encode(), message, digestmod).hexdigest()


def signatures_match(received: str | None, expected: str) -> bool:
    if not received:
        return False
    return hmac.compare_digest(received.strip().lower(), expected.lower())
