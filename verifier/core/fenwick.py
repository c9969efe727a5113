"""
fenwick.py — Logical Array Index
==================================
Presents the concatenation of a data set's active pieces as one
zero-indexed space of 32-byte leaves.

Backed by a Fenwick (binary indexed) tree keyed by piece slot, where
slot k belongs to piece id k and stores that piece's leaf count:

    point update    O(log n)   add / tombstone a piece
    prefix sum      O(log n)   leaves before a slot
    offset search   O(log n)   global leaf offset -> (piece, local offset)

Deleted pieces keep their slot with a zero count; slots are never
compacted or reused.
"""

import logging
from typing import Iterator, List, Sequence, Tuple

from verifier.core.errors import DuplicateID, NotFound, OffsetOutOfRange

logger = logging.getLogger(__name__)


def _lowbit(i: int) -> int:
    return i & -i


class LogicalArrayIndex:
    """
    Order-statistics index over a size-weighted, mutable piece sequence.

    Internally `_tree` is 1-based: `_tree[i]` holds the sum of the slots
    in the half-open range (i - lowbit(i), i]. `_tree[0]` is unused.
    """

    def __init__(self):
        self._tree: List[int] = [0]
        self._counts: List[int] = []
        self._total = 0

    # ── Mutation ──────────────────────────────────────────

    def insert_piece(self, piece_id: int, leaf_count: int) -> None:
        """
        Append a piece at the next free slot.

        Args:
            piece_id: Must equal the next unused slot number.
            leaf_count: Leaves the piece contributes (> 0).

        Raises:
            DuplicateID: If the id has already been assigned.
            ValueError: If ids are skipped or leaf_count is not positive.
        """
        if piece_id < len(self._counts):
            raise DuplicateID(f"Piece id {piece_id} already assigned")
        if piece_id != len(self._counts):
            raise ValueError(
                f"Piece id {piece_id} skips ahead of next slot {len(self._counts)}"
            )
        if leaf_count <= 0:
            raise ValueError("Leaf count must be a positive integer")

        # The new node covers (pos - lowbit(pos), pos]; gather the
        # already-built nodes beneath it.
        pos = piece_id + 1
        node = leaf_count
        child = pos - 1
        stop = pos - _lowbit(pos)
        while child > stop:
            node += self._tree[child]
            child -= _lowbit(child)

        self._tree.append(node)
        self._counts.append(leaf_count)
        self._total += leaf_count
        logger.debug("Inserted piece %d (%d leaves)", piece_id, leaf_count)

    def delete_piece(self, piece_id: int) -> int:
        """
        Tombstone a piece: zero its slot without compacting.

        Returns:
            The number of leaves removed.

        Raises:
            NotFound: If the piece does not exist or is already deleted.
        """
        leaf_count = self.leaf_count(piece_id)
        self._update(piece_id, -leaf_count)
        self._counts[piece_id] = 0
        self._total -= leaf_count
        logger.debug("Tombstoned piece %d (%d leaves)", piece_id, leaf_count)
        return leaf_count

    def _update(self, slot: int, delta: int) -> None:
        pos = slot + 1
        while pos < len(self._tree):
            self._tree[pos] += delta
            pos += _lowbit(pos)

    # ── Queries ───────────────────────────────────────────

    def total_leaves(self) -> int:
        return self._total

    @property
    def slot_count(self) -> int:
        """Number of slots ever assigned, deleted ones included."""
        return len(self._counts)

    def __contains__(self, piece_id: int) -> bool:
        return 0 <= piece_id < len(self._counts) and self._counts[piece_id] > 0

    def leaf_count(self, piece_id: int) -> int:
        """Leaf count of an active piece; NotFound otherwise."""
        if piece_id not in self:
            raise NotFound(f"Piece {piece_id} not found")
        return self._counts[piece_id]

    def active_ids(self) -> Iterator[int]:
        """Active piece ids in slot order."""
        return (i for i, count in enumerate(self._counts) if count > 0)

    def prefix_sum(self, slot: int) -> int:
        """Total leaves held by slots [0, slot)."""
        if slot < 0 or slot > len(self._counts):
            raise IndexError(f"Slot {slot} out of range [0, {len(self._counts)}]")
        total = 0
        pos = slot
        while pos > 0:
            total += self._tree[pos]
            pos -= _lowbit(pos)
        return total

    def resolve(self, global_offset: int) -> Tuple[int, int]:
        """
        Find the piece holding the leaf at a global offset.

        Walks the tree top-down, taking each block whose sum still fits
        below the target; the slot after the last block taken is the
        owner. Tombstoned slots have zero weight and are never chosen.

        Returns:
            (piece_id, local_offset) with local_offset < that piece's leaf count.

        Raises:
            OffsetOutOfRange: If the offset is negative or >= total_leaves().
        """
        if global_offset < 0 or global_offset >= self._total:
            raise OffsetOutOfRange(
                f"Leaf offset {global_offset} out of range [0, {self._total})"
            )

        size = len(self._counts)
        pos = 0
        remaining = global_offset
        step = 1 << (size.bit_length() - 1)
        while step:
            nxt = pos + step
            if nxt <= size and self._tree[nxt] <= remaining:
                pos = nxt
                remaining -= self._tree[nxt]
            step >>= 1

        # pos is now the number of slots lying wholly before the target
        return pos, remaining

    def resolve_many(self, offsets: Sequence[int]) -> List[Tuple[int, int]]:
        return [self.resolve(offset) for offset in offsets]
