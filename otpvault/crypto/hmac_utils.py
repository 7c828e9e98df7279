"""Keyed-hash adapter used by the OTP engine.

Keys and messages travel as hex strings so RFC 2202 / RFC 4231 fixtures can be
fed in verbatim. The HMAC itself is computed by ``cryptography``.
"""

from __future__ import annotations

import binascii
import logging

from cryptography.hazmat.primitives import hashes, hmac

from otpvault.models.account import HashAlgorithm

logger = logging.getLogger(__name__)

# Substituted for any key or message that is not valid hex.
INVALID_HEX_FALLBACK: bytes = b"\x00"

_HASHES = {
    HashAlgorithm.SHA1: hashes.SHA1,
    HashAlgorithm.SHA256: hashes.SHA256,
    HashAlgorithm.SHA512: hashes.SHA512,
}


def decode_hex(value: str) -> bytes:
    """Decode ``value`` as hex, or return a single zero byte if it is not hex.

    Decoding is strict: odd lengths, whitespace and non-hex characters all
    trigger the fallback.
    """

    try:
        return binascii.unhexlify(value)
    except ValueError:  # binascii.Error subclasses ValueError
        logger.debug("Invalid hex input of length %d, using zero byte", len(value))
        return INVALID_HEX_FALLBACK


def sign(key: bytes, algorithm: HashAlgorithm, message: bytes) -> bytes:
    """Return the raw HMAC of ``message`` under ``key``."""

    mac = hmac.HMAC(key, _HASHES[algorithm]())
    mac.update(message)
    return mac.finalize()


def compute_hmac(hex_key: str, hex_message: str, algorithm: HashAlgorithm) -> str:
    """HMAC a hex-encoded message with a hex-encoded key; return lower-case hex."""

    digest = sign(decode_hex(hex_key), algorithm, decode_hex(hex_message))
    return digest.hex()
