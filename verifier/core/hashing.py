"""
hashing.py — Hash Primitives
==============================
SHA-256 based hashing for Merkle nodes and leaves.

Internal Merkle nodes use SHA-254: SHA-256 with the two most
significant bits of the final byte cleared, so every node is a
valid BN254 field element. This matches the node hash of Filecoin
piece commitments.
"""

import hashlib
import logging
import string

logger = logging.getLogger(__name__)

# Every leaf and every internal node is exactly 32 bytes
NODE_SIZE = 32


def sha256_hash(data: bytes) -> bytes:
    """
    Compute the SHA-256 digest of the given data.

    Args:
        data: Raw bytes to hash.

    Returns:
        32-byte digest.

    Raises:
        TypeError: If data is not bytes.
    """
    if not isinstance(data, (bytes, bytearray)):
        raise TypeError(f"Expected bytes, got {type(data).__name__}")
    return hashlib.sha256(data).digest()


def sha254_hash(data: bytes) -> bytes:
    """SHA-256 truncated to 254 bits (top two bits of the last byte cleared)."""
    digest = bytearray(sha256_hash(data))
    digest[-1] &= 0x3F
    return bytes(digest)


def hash_pair(left: bytes, right: bytes) -> bytes:
    """Hash two child nodes together: SHA-254(left || right)."""
    return sha254_hash(left + right)


def short_hex(digest: bytes) -> str:
    """First 16 hex characters of a digest, for log lines."""
    return digest.hex()[:16] + "..."


def decode_hex(value: str) -> bytes:
    """
    Decode a hex string with an optional "0x" or "0X" prefix.

    Only hex digits are accepted after the prefix; whitespace and other
    separators that bytes.fromhex tolerates are rejected.

    Raises:
        ValueError: If the value is not strictly hex encoded.
    """
    digits = value[2:] if value.startswith(("0x", "0X")) else value
    if len(digits) % 2 or not all(c in string.hexdigits for c in digits):
        raise ValueError(f"{value[:20]!r} is not a hex string")
    return bytes.fromhex(digits)
