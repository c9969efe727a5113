"""
challenges.py — Challenge Generator
=====================================
Derives the global leaf offsets a prover must answer for.

Offset i of a proving round is

    keccak256( seed || data_set_id || total_leaves || uint64(i) ) mod total_leaves

ABI-packed as (bytes32, uint256, uint256, uint64), so any observer with
the same inputs recomputes the same challenges. The seed is beacon
randomness for an epoch fixed before the prover could react to it.
"""

import logging
from typing import List

from web3 import Web3

from verifier.core.errors import InsufficientLeaves

logger = logging.getLogger(__name__)

SEED_SIZE = 32


def derive_challenge(seed: bytes, data_set_id: int, total_leaves: int, round_index: int) -> int:
    """Derive the single challenge offset for one round."""
    digest = Web3.solidity_keccak(
        ["bytes32", "uint256", "uint256", "uint64"],
        [seed, data_set_id, total_leaves, round_index],
    )
    return int.from_bytes(digest, "big") % total_leaves


def derive_challenges(seed: bytes, data_set_id: int, total_leaves: int, count: int) -> List[int]:
    """
    Derive `count` challenge offsets for a data set.

    Args:
        seed: 32-byte beacon randomness for the challenge epoch.
        data_set_id: Id of the data set being challenged.
        total_leaves: Leaf count of the data set at verification time.
        count: Number of challenges per proof.

    Returns:
        List of `count` offsets, each in [0, total_leaves).

    Raises:
        InsufficientLeaves: If total_leaves is zero.
        ValueError: If the seed is not 32 bytes or count is negative.
    """
    if total_leaves <= 0:
        raise InsufficientLeaves(
            f"Data set {data_set_id} has no leaves to challenge"
        )
    if len(seed) != SEED_SIZE:
        raise ValueError(f"Seed must be {SEED_SIZE} bytes, got {len(seed)}")
    if count < 0:
        raise ValueError("Challenge count must not be negative")

    offsets = [
        derive_challenge(seed, data_set_id, total_leaves, i) for i in range(count)
    ]
    logger.debug(
        "Derived %d challenges for data set %d over %d leaves",
        count,
        data_set_id,
        total_leaves,
    )
    return offsets
