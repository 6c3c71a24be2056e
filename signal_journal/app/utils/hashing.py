"""
Canonical content hashing.

Every document that passes through the signing core is hashed here, both at
signing time and at verification time. The algorithm is fixed to SHA-256 for
the lifetime of the system; input format never selects a different digest.

IMPORTANT DESIGN RULE:
- Text, base64 text, and raw bytes are normalized to bytes first.
- This module hashes bytes, and bytes only.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import logging
from typing import Union

logger = logging.getLogger("signal_journal.hashing")

HASH_ALGORITHM = "SHA-256"
HASH_HEX_LENGTH = 64

Content = Union[bytes, bytearray, memoryview, str]


def content_to_bytes(content: Content, *, is_base64: bool = False) -> bytes:
    """
    Normalize document content to the exact byte sequence that is hashed.

    Args:
        content:
            Raw bytes, UTF-8 text, or base64 text.
        is_base64:
            Treat ``content`` as base64 and decode it. Only meaningful for
            text input; byte buffers are always taken verbatim.

    Raises:
        TypeError:
            If ``content`` is not bytes-like or text. This is a programmer
            error and is never coerced.
        ValueError:
            If ``is_base64`` is set and the text is not valid base64.
    """
    if isinstance(content, (bytes, bytearray, memoryview)):
        return bytes(content)

    if isinstance(content, str):
        if is_base64:
            try:
                return base64.b64decode(content, validate=True)
            except binascii.Error as exc:
                raise ValueError(f"content is not valid base64: {exc}") from exc
        return content.encode("utf-8")

    raise TypeError(
        "content must be bytes or str, "
        f"got {type(content).__name__}"
    )


def compute_content_hash(content: Content, *, is_base64: bool = False) -> str:
    """
    Compute the canonical ContentHash of a document.

    Returns:
        Lowercase hex SHA-256 digest (64 characters), without an algorithm
        prefix. The hash is embedded verbatim in signed PDFs and QR payloads.
    """
    data = content_to_bytes(content, is_base64=is_base64)
    digest = hashlib.sha256(data).hexdigest()

    logger.debug(
        "content_hashed",
        extra={"size": len(data), "hash_prefix": digest[:10]},
    )
    return digest


def hashes_equal(first: str, second: str) -> bool:
    """
    Compare two hex hashes in constant time.

    Surrounding whitespace and hex letter case are ignored; hashes written by
    other tooling are sometimes upper-cased.
    """
    if not isinstance(first, str) or not isinstance(second, str):
        return False

    return hmac.compare_digest(
        first.strip().lower().encode("ascii", "replace"),
        second.strip().lower().encode("ascii", "replace"),
    )


def verify_hash(
    content: Content,
    expected_hash: str,
    *,
    is_base64: bool = False,
) -> bool:
    """
    Recompute the hash of ``content`` and compare it to ``expected_hash``.

    Fails closed: undecodable base64 yields False rather than an error.
    """
    try:
        actual = compute_content_hash(content, is_base64=is_base64)
    except ValueError:
        return False
    return hashes_equal(actual, expected_hash)


def is_content_hash(value: object) -> bool:
    """Return True if ``value`` looks like a SHA-256 hex digest."""
    if not isinstance(value, str) or len(value) != HASH_HEX_LENGTH:
        return False
    try:
        bytes.fromhex(value)
    except ValueError:
        return False
    return True
