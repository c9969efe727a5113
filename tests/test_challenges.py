"""
test_challenges.py — Unit Tests for Challenge Derivation
==========================================================
"""

import pytest

from verifier.core.challenges import derive_challenge, derive_challenges
from verifier.core.errors import InsufficientLeaves
from verifier.core.hashing import sha256_hash

SEED = sha256_hash(b"epoch-seed")
LEAVES = 1_000_003


class TestDeriveChallenges:

    def test_deterministic(self):
        """Identical inputs give the identical sequence."""
        first = derive_challenges(SEED, 7, LEAVES, 5)
        second = derive_challenges(SEED, 7, LEAVES, 5)
        assert first == second
        assert len(first) == 5

    def test_offsets_in_range(self):
        """Every offset lies in [0, total_leaves)."""
        for total in (1, 2, 3, 12, 1000):
            offsets = derive_challenges(SEED, 1, total, 20)
            assert all(0 <= o < total for o in offsets)

    def test_single_leaf_always_zero(self):
        """With one leaf every challenge is offset 0."""
        assert derive_challenges(SEED, 1, 1, 4) == [0, 0, 0, 0]

    def test_seed_changes_offsets(self):
        """A different seed gives a different sequence."""
        other = sha256_hash(b"another-seed")
        assert derive_challenges(SEED, 7, LEAVES, 5) != derive_challenges(other, 7, LEAVES, 5)

    def test_data_set_id_changes_offsets(self):
        """The data set id is mixed into each challenge."""
        assert derive_challenges(SEED, 7, LEAVES, 5) != derive_challenges(SEED, 8, LEAVES, 5)

    def test_total_leaves_changes_offsets(self):
        """The leaf count is mixed into each challenge."""
        assert derive_challenges(SEED, 7, LEAVES, 5) != derive_challenges(SEED, 7, LEAVES + 1, 5)

    def test_count_extends_prefix(self):
        """Round i does not depend on how many rounds are requested."""
        short = derive_challenges(SEED, 7, LEAVES, 3)
        long = derive_challenges(SEED, 7, LEAVES, 6)
        assert long[:3] == short
        assert long[3] == derive_challenge(SEED, 7, LEAVES, 3)

    def test_rounds_differ(self):
        """Rounds of one proof do not all repeat the same offset."""
        offsets = derive_challenges(SEED, 7, LEAVES, 5)
        assert len(set(offsets)) > 1

    def test_zero_leaves_raises(self):
        """An empty data set cannot be challenged."""
        with pytest.raises(InsufficientLeaves):
            derive_challenges(SEED, 7, 0, 5)

    def test_bad_seed_raises(self):
        """Seeds must be exactly 32 bytes."""
        with pytest.raises(ValueError, match="32 bytes"):
            derive_challenges(b"short", 7, LEAVES, 5)

    def test_negative_count_raises(self):
        """A negative challenge count is rejected."""
        with pytest.raises(ValueError, match="negative"):
            derive_challenges(SEED, 7, LEAVES, -1)

    def test_zero_count(self):
        """Zero rounds yield no challenges."""
        assert derive_challenges(SEED, 7, LEAVES, 0) == []
