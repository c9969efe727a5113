"""
merkle.py — Merkle Inclusion Proofs
=====================================
Verifies that a 32-byte leaf sits at a given offset beneath a piece's
committed root, and builds trees on the prover side.

Hash function: SHA-254 (see hashing.py)
Leaf nodes: raw 32-byte leaves of the piece
Internal nodes: SHA-254( left_child || right_child )

A piece of n leaves is committed as a tree of height ceil(log2(n));
the prover pads the leaf layer with zero leaves up to the next power
of two. Sibling order is taken from the bits of the leaf offset,
least significant bit first.
"""

import logging
from typing import List, Sequence

from verifier.core.hashing import NODE_SIZE, hash_pair, short_hex

logger = logging.getLogger(__name__)

ZERO_LEAF = bytes(NODE_SIZE)


def tree_height(leaf_count: int) -> int:
    """Height of the tree committing leaf_count leaves: ceil(log2(leaf_count))."""
    if leaf_count <= 0:
        raise ValueError("Leaf count must be a positive integer")
    return (leaf_count - 1).bit_length()


def verify(
    leaf: bytes,
    local_offset: int,
    proof: Sequence[bytes],
    expected_root: bytes,
    leaf_count: int,
) -> bool:
    """
    Verify a Merkle inclusion proof for a single leaf.

    Fails closed: any malformed input yields False rather than an
    exception, so callers can check many proofs in a row.

    Args:
        leaf: The 32-byte leaf claimed to sit at local_offset.
        local_offset: Zero-based leaf index inside the piece.
        proof: Sibling hashes ordered from the leaf up to the root.
        expected_root: The piece's committed 32-byte root.
        leaf_count: Number of leaves the piece contributes.

    Returns:
        True if recomputing the path from the leaf yields expected_root.
    """
    if leaf_count <= 0 or local_offset < 0 or local_offset >= leaf_count:
        return False
    if len(proof) != tree_height(leaf_count):
        return False
    if len(leaf) != NODE_SIZE or len(expected_root) != NODE_SIZE:
        return False
    if any(len(sibling) != NODE_SIZE for sibling in proof):
        return False

    computed = leaf
    index = local_offset
    for sibling in proof:
        if index & 1 == 0:
            computed = hash_pair(computed, sibling)
        else:
            computed = hash_pair(sibling, computed)
        index >>= 1

    is_valid = computed == expected_root
    logger.debug(
        "Merkle proof verification: %s (offset=%d, computed=%s, expected=%s)",
        "PASS" if is_valid else "FAIL",
        local_offset,
        short_hex(computed),
        short_hex(expected_root),
    )
    return is_valid


class MerkleTree:
    """
    A binary Merkle tree over a piece's 32-byte leaves.

    Attributes:
        leaves: The original leaves (without padding).
        levels: All levels of the padded tree, from leaves (index 0) to root.
    """

    def __init__(self, leaves: List[bytes]):
        """
        Build a Merkle tree from a list of 32-byte leaves.

        Raises:
            ValueError: If the leaf list is empty or a leaf is not 32 bytes.
        """
        if not leaves:
            raise ValueError("Cannot build Merkle tree from empty leaf list")
        for i, leaf in enumerate(leaves):
            if len(leaf) != NODE_SIZE:
                raise ValueError(
                    f"Leaf {i} must be {NODE_SIZE} bytes, got {len(leaf)}"
                )

        self.leaves: List[bytes] = list(leaves)
        self.levels: List[List[bytes]] = []
        self._build_tree()

        logger.debug(
            "Built Merkle tree with %d leaves, root=%s",
            len(self.leaves),
            short_hex(self.root),
        )

    @classmethod
    def from_data(cls, data: bytes) -> "MerkleTree":
        """Split raw piece data into 32-byte leaves and build the tree."""
        if not data or len(data) % NODE_SIZE != 0:
            raise ValueError(
                f"Piece data must be a positive multiple of {NODE_SIZE} bytes"
            )
        return cls([data[i:i + NODE_SIZE] for i in range(0, len(data), NODE_SIZE)])

    def _build_tree(self) -> None:
        """Pad the leaf layer to a power of two and hash up to the root."""
        width = 1 << tree_height(len(self.leaves))
        current_level = self.leaves + [ZERO_LEAF] * (width - len(self.leaves))
        self.levels.append(current_level)

        while len(current_level) > 1:
            current_level = [
                hash_pair(current_level[i], current_level[i + 1])
                for i in range(0, len(current_level), 2)
            ]
            self.levels.append(current_level)

    @property
    def root(self) -> bytes:
        """Return the Merkle root."""
        return self.levels[-1][0]

    @property
    def leaf_count(self) -> int:
        return len(self.leaves)

    def get_proof(self, index: int) -> List[bytes]:
        """
        Get the sibling path for the leaf at `index`.

        Raises:
            IndexError: If index is out of range.
        """
        if index < 0 or index >= len(self.leaves):
            raise IndexError(
                f"Leaf index {index} out of range [0, {len(self.leaves)})"
            )

        proof = []
        current_index = index
        for level in self.levels[:-1]:  # Skip the root level
            proof.append(level[current_index ^ 1])
            current_index //= 2
        return proof
