"""
ECDSA P-256 signature engine.

Fixed encodings (shared by signing clients and this module):
- public key:  base64 of the 65-byte uncompressed SEC1 point (0x04 || X || Y)
- signature:   base64 of either raw r || s (64 bytes) or ASN.1 DER
- message:     the SHA-256 digest of the document content bytes

Trust rule:
- Verification FAILS CLOSED. Corrupt, ambiguous, or mismatched input is
  reported as "not valid" and never raised to the caller.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import logging
import re
from typing import Dict, Optional, Union

from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import (
    Prehashed,
    decode_dss_signature,
    encode_dss_signature,
)

from signal_journal.app.utils.hashing import Content, content_to_bytes

logger = logging.getLogger("signal_journal.crypto")

CURVE = ec.SECP256R1()
CURVE_NAME = "P-256"

_UNCOMPRESSED_POINT_LENGTH = 65
_UNCOMPRESSED_POINT_PREFIX = 0x04
_RAW_SIGNATURE_LENGTH = 64
_COORDINATE_LENGTH = 32

# Any decoding or verification failure that must collapse into "False".
_VERIFICATION_FAILURES = (
    InvalidSignature,
    UnsupportedAlgorithm,
    ValueError,
    TypeError,
    binascii.Error,
)


# ----------------------------------------------------------------------
# Key and signature decoding
# ----------------------------------------------------------------------

def _b64decode(value: str) -> bytes:
    if not isinstance(value, str):
        raise TypeError(f"expected base64 text, got {type(value).__name__}")
    return base64.b64decode(value.strip(), validate=True)


def decode_public_key(public_key: str) -> ec.EllipticCurvePublicKey:
    """
    Decode a base64 SEC1 uncompressed point into a P-256 public key.

    Raises:
        ValueError / binascii.Error:
            If the encoding, length, prefix, or curve point is invalid.
    """
    raw = _b64decode(public_key)

    if len(raw) != _UNCOMPRESSED_POINT_LENGTH:
        raise ValueError(
            f"public key must be {_UNCOMPRESSED_POINT_LENGTH} bytes, "
            f"got {len(raw)}"
        )
    if raw[0] != _UNCOMPRESSED_POINT_PREFIX:
        raise ValueError("public key is not an uncompressed SEC1 point")

    # Rejects points that are not on the curve.
    return ec.EllipticCurvePublicKey.from_encoded_point(CURVE, raw)


def encode_public_key(public_key: ec.EllipticCurvePublicKey) -> str:
    """Encode a P-256 public key in the fixed base64 SEC1 form."""
    raw = public_key.public_bytes(
        encoding=serialization.Encoding.X962,
        format=serialization.PublicFormat.UncompressedPoint,
    )
    return base64.b64encode(raw).decode("ascii")


def _decode_signature(signature: str) -> bytes:
    """
    Normalize a base64 signature into DER.

    Raw r || s signatures (as produced by WebCrypto and most JS libraries)
    are converted; anything else must already be well-formed DER.
    """
    raw = _b64decode(signature)

    if len(raw) == _RAW_SIGNATURE_LENGTH:
        r = int.from_bytes(raw[:_COORDINATE_LENGTH], "big")
        s = int.from_bytes(raw[_COORDINATE_LENGTH:], "big")
        return encode_dss_signature(r, s)

    # Raises ValueError on malformed DER.
    decode_dss_signature(raw)
    return raw


# ----------------------------------------------------------------------
# Public API
# ----------------------------------------------------------------------

def validate_public_key(public_key: str) -> bool:
    """
    Structural validation of a public key string.

    Checks base64 encoding, length, point prefix, and that the point lies on
    P-256. No signature is required.
    """
    try:
        decode_public_key(public_key)
    except _VERIFICATION_FAILURES as exc:
        logger.debug(
            "public_key_rejected",
            extra={"error_type": type(exc).__name__},
        )
        return False
    return True


def verify_signature_for_hash(
    content_hash: str,
    signature: str,
    public_key: str,
) -> bool:
    """
    Verify a signature against an already computed hex ContentHash.

    Used when only the recorded hash is available (e.g. a PDF verified
    without access to its stored source content).
    """
    try:
        digest = bytes.fromhex(content_hash)
        if len(digest) != hashlib.sha256().digest_size:
            raise ValueError("content hash is not a SHA-256 digest")

        key = decode_public_key(public_key)
        der_signature = _decode_signature(signature)
        key.verify(der_signature, digest, ec.ECDSA(Prehashed(hashes.SHA256())))
    except _VERIFICATION_FAILURES as exc:
        logger.info(
            "signature_not_verified",
            extra={"error_type": type(exc).__name__},
        )
        return False

    return True


def verify_signature(
    content: Content,
    signature: str,
    public_key: str,
    *,
    is_base64: bool = False,
) -> bool:
    """
    Verify an ECDSA P-256 signature over document content.

    The SHA-256 digest of ``content`` is recomputed here; the signature is
    never checked against a caller-supplied hash.

    Returns:
        True only if the signature verifies. Malformed signatures, malformed
        keys, undecodable content, and mismatched curves all yield False.
    """
    try:
        data = content_to_bytes(content, is_base64=is_base64)
    except (TypeError, ValueError) as exc:
        logger.warning(
            "signature_content_rejected",
            extra={"error_type": type(exc).__name__},
        )
        return False

    return verify_signature_for_hash(
        hashlib.sha256(data).hexdigest(),
        signature,
        public_key,
    )


def load_private_key(
    private_key: Union[ec.EllipticCurvePrivateKey, str, bytes],
) -> ec.EllipticCurvePrivateKey:
    """Accept a key object or PEM text and return a P-256 private key."""
    if isinstance(private_key, ec.EllipticCurvePrivateKey):
        key = private_key
    else:
        pem = private_key.encode("ascii") if isinstance(private_key, str) else private_key
        key = serialization.load_pem_private_key(pem, password=None)

    if not isinstance(key, ec.EllipticCurvePrivateKey) or key.curve.name != CURVE.name:
        raise ValueError(f"private key is not an ECDSA {CURVE_NAME} key")
    return key


def sign_content(
    content: Content,
    private_key: Union[ec.EllipticCurvePrivateKey, str, bytes],
    *,
    is_base64: bool = False,
) -> str:
    """
    Sign document content and return a base64 DER signature.

    DEVELOPMENT ONLY.
    Production signatures are produced by the signer's own client; the
    service never holds private keys.
    """
    key = load_private_key(private_key)
    digest = hashlib.sha256(content_to_bytes(content, is_base64=is_base64)).digest()
    der_signature = key.sign(digest, ec.ECDSA(Prehashed(hashes.SHA256())))
    return base64.b64encode(der_signature).decode("ascii")


# ----------------------------------------------------------------------
# Verification identifier recovery (QR fallback)
# ----------------------------------------------------------------------

_ID_CHARS = r"[A-Za-z0-9_-]{4,128}"

_VERIFICATION_ID_PATTERNS = (
    (
        "labelled_id",
        re.compile(
            r"(?:verification|document|journal)[\s_-]*id\s*[:=]\s*"
            rf"[\"']?({_ID_CHARS})",
            re.IGNORECASE,
        ),
    ),
    (
        "labelled_id",
        re.compile(rf"id\s+dokumen\s*[:=]\s*[\"']?({_ID_CHARS})", re.IGNORECASE),
    ),
    (
        "packet_field",
        re.compile(rf"[\"']?signal_id[\"']?\s*[:=]\s*[\"']?({_ID_CHARS})"),
    ),
    (
        "query_parameter",
        re.compile(rf"[?&]id=({_ID_CHARS})"),
    ),
)

_HASH_PATTERN = re.compile(r"(?<![0-9a-fA-F])([0-9a-fA-F]{64})(?![0-9a-fA-F])")


def extract_signature_info(raw_text: str) -> Optional[Dict[str, Optional[str]]]:
    """
    Best-effort recovery of a verification identifier from free text.

    Used when a scanned QR payload is neither a verification URL nor JSON,
    e.g. text copied from a printed signature block.

    Returns:
        ``{"verification_id", "matched_by", "document_hash"}`` or None when
        no identifier pattern matches. Never raises.
    """
    if not isinstance(raw_text, str) or not raw_text.strip():
        return None

    for name, pattern in _VERIFICATION_ID_PATTERNS:
        match = pattern.search(raw_text)
        if match is None:
            continue

        hash_match = _HASH_PATTERN.search(raw_text)
        return {
            "verification_id": match.group(1),
            "matched_by": name,
            "document_hash": hash_match.group(1).lower() if hash_match else None,
        }

    return None
