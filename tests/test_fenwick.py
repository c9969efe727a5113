"""
test_fenwick.py — Unit Tests for the Logical Array Index
==========================================================
"""

import random

import pytest

from verifier.core.errors import DuplicateID, NotFound, OffsetOutOfRange
from verifier.core.fenwick import LogicalArrayIndex


def _index_with(*leaf_counts) -> LogicalArrayIndex:
    index = LogicalArrayIndex()
    for piece_id, count in enumerate(leaf_counts):
        index.insert_piece(piece_id, count)
    return index


def _expected_owners(counts: dict) -> list:
    """Naive flattening: owner and local offset of every leaf."""
    owners = []
    for piece_id in sorted(counts):
        owners.extend((piece_id, local) for local in range(counts[piece_id]))
    return owners


class TestResolve:
    """Offset resolution for pieces of 4, 2 and 6 leaves."""

    def test_first_piece(self):
        """Offsets 0-3 fall in piece 0."""
        index = _index_with(4, 2, 6)
        assert [index.resolve(k) for k in range(4)] == [(0, 0), (0, 1), (0, 2), (0, 3)]

    def test_second_piece(self):
        """Offsets 4-5 fall in piece 1."""
        index = _index_with(4, 2, 6)
        assert [index.resolve(k) for k in (4, 5)] == [(1, 0), (1, 1)]

    def test_third_piece(self):
        """Offsets 6-11 fall in piece 2."""
        index = _index_with(4, 2, 6)
        assert [index.resolve(k) for k in range(6, 12)] == [(2, i) for i in range(6)]

    def test_past_end_raises(self):
        """The total leaf count is one past the last offset."""
        index = _index_with(4, 2, 6)
        with pytest.raises(OffsetOutOfRange):
            index.resolve(12)

    def test_negative_raises(self):
        """Negative offsets are out of range."""
        index = _index_with(4, 2, 6)
        with pytest.raises(OffsetOutOfRange):
            index.resolve(-1)

    def test_empty_index_raises(self):
        """An empty index resolves nothing."""
        with pytest.raises(OffsetOutOfRange):
            LogicalArrayIndex().resolve(0)

    def test_resolve_many(self):
        """Batch resolution matches single resolution."""
        index = _index_with(4, 2, 6)
        assert index.resolve_many([0, 5, 11]) == [(0, 0), (1, 1), (2, 5)]


class TestMutation:
    """Insertion and tombstoning."""

    def test_totals(self):
        """Total leaves and prefix sums over the slots."""
        index = _index_with(4, 2, 6)
        assert index.total_leaves() == 12
        assert index.slot_count == 3
        assert index.prefix_sum(0) == 0
        assert index.prefix_sum(2) == 6
        assert index.prefix_sum(3) == 12

    def test_duplicate_id_raises(self):
        """An id already inserted cannot be inserted again."""
        index = _index_with(4, 2)
        with pytest.raises(DuplicateID):
            index.insert_piece(1, 3)

    def test_deleted_id_is_never_reused(self):
        """A deleted slot stays retired."""
        index = _index_with(4, 2)
        index.delete_piece(1)
        with pytest.raises(DuplicateID):
            index.insert_piece(1, 3)

    def test_skipping_slots_raises(self):
        """Ids must be inserted in order without gaps."""
        index = _index_with(4)
        with pytest.raises(ValueError, match="skips"):
            index.insert_piece(5, 1)

    def test_zero_leaf_count_raises(self):
        """Pieces must have at least one leaf."""
        with pytest.raises(ValueError, match="positive"):
            LogicalArrayIndex().insert_piece(0, 0)

    def test_delete_middle_piece_tombstones(self):
        """Later offsets shift down; the deleted piece is never returned."""
        index = _index_with(4, 2, 6)
        assert index.delete_piece(1) == 2
        assert index.total_leaves() == 10
        assert 1 not in index
        assert list(index.active_ids()) == [0, 2]
        assert index.resolve(3) == (0, 3)
        assert index.resolve(4) == (2, 0)
        assert index.resolve(9) == (2, 5)
        assert index.slot_count == 3

    def test_stale_offset_past_new_end_raises(self):
        """An offset issued before a deletion cannot resolve past the new end."""
        index = _index_with(4, 2, 6)
        index.delete_piece(1)
        with pytest.raises(OffsetOutOfRange):
            index.resolve(11)

    def test_delete_missing_raises(self):
        """Deleting an absent or already deleted id raises NotFound."""
        index = _index_with(4)
        with pytest.raises(NotFound):
            index.delete_piece(3)
        index.delete_piece(0)
        with pytest.raises(NotFound):
            index.delete_piece(0)

    def test_insert_after_delete(self):
        """Appending after a deletion keeps resolution consistent."""
        index = _index_with(4, 2, 6)
        index.delete_piece(0)
        index.insert_piece(3, 1)
        assert index.total_leaves() == 9
        assert index.resolve(0) == (1, 0)
        assert index.resolve(8) == (3, 0)

    def test_leaf_count(self):
        """Leaf counts are available only for live ids."""
        index = _index_with(4, 2)
        assert index.leaf_count(1) == 2
        index.delete_piece(1)
        with pytest.raises(NotFound):
            index.leaf_count(1)


class TestConsistency:
    """Random insert/delete sequences against a naive model."""

    @pytest.mark.parametrize("seed", [1, 7, 42, 1234])
    def test_random_operations(self, seed):
        """Random inserts and deletes agree with a flat model."""
        rng = random.Random(seed)
        index = LogicalArrayIndex()
        counts = {}
        next_id = 0

        for _ in range(300):
            if counts and rng.random() < 0.35:
                victim = rng.choice(sorted(counts))
                assert index.delete_piece(victim) == counts.pop(victim)
            else:
                count = rng.randint(1, 9)
                index.insert_piece(next_id, count)
                counts[next_id] = count
                next_id += 1

            assert index.total_leaves() == sum(counts.values())
            assert set(index.active_ids()) == set(counts)

        owners = _expected_owners(counts)
        assert [index.resolve(k) for k in range(index.total_leaves())] == owners

    def test_every_leaf_resolved_exactly_once(self):
        """Each leaf of each live piece is reached by exactly one offset."""
        index = _index_with(*range(1, 20))
        for victim in (0, 5, 6, 18):
            index.delete_piece(victim)

        seen = {}
        for k in range(index.total_leaves()):
            piece_id, local = index.resolve(k)
            assert piece_id in index
            assert 0 <= local < index.leaf_count(piece_id)
            seen.setdefault(piece_id, []).append(local)

        for piece_id, locals_ in seen.items():
            assert locals_ == list(range(index.leaf_count(piece_id)))
        assert set(seen) == set(index.active_ids())
