"""
piece_validator.py — Piece Identifier Validation
==================================================
Checks a piece's declared content identifier and byte size before the
piece is admitted to a data set, and extracts the 32-byte Merkle root
the verifier checks proofs against.

Identifier formats are pluggable: the verifier only depends on the
PieceIdentifierValidator interface. The default HexDigestValidator
accepts the raw root digest as 64 hex digits, with or without a
leading "0x".
"""

import logging

from verifier.core.errors import InvalidPieceIdentifier
from verifier.core.hashing import NODE_SIZE, decode_hex, short_hex

logger = logging.getLogger(__name__)

# Leaf size in bytes; piece sizes must be a multiple of it
LEAF_SIZE = NODE_SIZE

# Largest piece accepted: 2^50 bytes
MAX_PIECE_SIZE_LOG2 = 50
MAX_PIECE_SIZE = 1 << MAX_PIECE_SIZE_LOG2


def check_piece_size(size: int) -> None:
    """
    Validate a declared piece size.

    Raises:
        InvalidPieceIdentifier: If the size is not a positive multiple
            of LEAF_SIZE or exceeds MAX_PIECE_SIZE.
    """
    if size <= 0:
        raise InvalidPieceIdentifier("Piece size must be positive")
    if size % LEAF_SIZE != 0:
        raise InvalidPieceIdentifier(
            f"Piece size {size} is not a multiple of {LEAF_SIZE} bytes"
        )
    if size > MAX_PIECE_SIZE:
        raise InvalidPieceIdentifier(
            f"Piece size {size} exceeds maximum of 2^{MAX_PIECE_SIZE_LOG2} bytes"
        )


class PieceIdentifierValidator:
    """Interface for identifier validators."""

    def validate(self, identifier: str, size: int) -> bytes:
        """
        Validate an identifier against its declared size.

        Returns:
            The piece's 32-byte Merkle root digest.

        Raises:
            InvalidPieceIdentifier: If the identifier or size is rejected.
        """
        raise NotImplementedError


class HexDigestValidator(PieceIdentifierValidator):
    """Accepts identifiers that are the hex-encoded root digest itself."""

    def validate(self, identifier: str, size: int) -> bytes:
        check_piece_size(size)

        message = f"Identifier {identifier[:20]!r} is not a {NODE_SIZE}-byte hex digest"
        try:
            root = decode_hex(identifier)
        except ValueError:
            raise InvalidPieceIdentifier(message) from None
        if len(root) != NODE_SIZE:
            raise InvalidPieceIdentifier(message)

        logger.debug("Accepted piece %s (%d bytes)", short_hex(root), size)
        return root
