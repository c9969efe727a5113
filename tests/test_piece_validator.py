"""
test_piece_validator.py — Unit Tests for Identifier Validation
================================================================
"""

import pytest

from verifier.core.errors import InvalidPieceIdentifier
from verifier.services.piece_validator import (
    MAX_PIECE_SIZE,
    HexDigestValidator,
    PieceIdentifierValidator,
    check_piece_size,
)

DIGEST = bytes(range(32))


class TestPieceSize:

    @pytest.mark.parametrize("size", [32, 64, 32 * 1000, MAX_PIECE_SIZE])
    def test_valid_sizes(self, size):
        """Positive multiples of 32 up to the maximum are accepted."""
        check_piece_size(size)

    @pytest.mark.parametrize("size", [0, -32, 31, 33, 100, MAX_PIECE_SIZE + 32])
    def test_invalid_sizes(self, size):
        """Zero, negative, unaligned and oversized pieces are rejected."""
        with pytest.raises(InvalidPieceIdentifier):
            check_piece_size(size)


class TestHexDigestValidator:

    def test_accepts_prefixed_hex(self):
        """A 0x-prefixed digest decodes to the root."""
        assert HexDigestValidator().validate("0x" + DIGEST.hex(), 64) == DIGEST

    def test_accepts_bare_hex(self):
        """A digest without prefix decodes to the root."""
        assert HexDigestValidator().validate(DIGEST.hex(), 64) == DIGEST

    def test_rejects_short_digest(self):
        """A digest shorter than 32 bytes is rejected."""
        with pytest.raises(InvalidPieceIdentifier, match="hex digest"):
            HexDigestValidator().validate(DIGEST.hex()[:-2], 64)

    def test_rejects_non_hex(self):
        """Non-hex characters are rejected."""
        with pytest.raises(InvalidPieceIdentifier):
            HexDigestValidator().validate("zz" * 32, 64)

    def test_rejects_bad_size(self):
        """The size rule applies even when the digest is valid."""
        with pytest.raises(InvalidPieceIdentifier, match="multiple of 32"):
            HexDigestValidator().validate(DIGEST.hex(), 50)

    def test_base_interface_is_abstract(self):
        """The base validator must be subclassed."""
        with pytest.raises(NotImplementedError):
            PieceIdentifierValidator().validate(DIGEST.hex(), 64)

    def test_accepts_uppercase_prefix(self):
        """A 0X prefix is accepted like 0x."""
        assert HexDigestValidator().validate("0X" + DIGEST.hex().upper(), 64) == DIGEST

    def test_rejects_embedded_whitespace(self):
        """Separators inside the digest are rejected even at the right length."""
        spaced = DIGEST.hex()[:30] + " " + DIGEST.hex()[31:]
        with pytest.raises(InvalidPieceIdentifier, match="hex digest"):
            HexDigestValidator().validate(spaced, 64)
