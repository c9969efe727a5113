"""
conftest.py — Shared Fixtures
===============================
"""

import pytest

from verifier.core.hashing import sha256_hash
from verifier.core.merkle import MerkleTree
from verifier.services.clock import ManualClock
from verifier.services.data_set import PieceData, Proof, ProvingParams
from verifier.services.listener import FaultReporter
from verifier.services.randomness import DeterministicBeacon
from verifier.services.registry import PDPVerifier

PROVIDER = "provider-a"
OTHER = "provider-b"


def make_leaves(label: str, n: int) -> list:
    """Generate n sample 32-byte leaves."""
    return [sha256_hash(f"{label}-leaf-{i}".encode()) for i in range(n)]


@pytest.fixture
def clock():
    return ManualClock(epoch=0)


@pytest.fixture
def reporter():
    return FaultReporter()


@pytest.fixture
def params():
    return ProvingParams(challenge_delay=10, proving_period=20, challenges_per_proof=5)


@pytest.fixture
def verifier(clock, reporter, params):
    return PDPVerifier(
        randomness=DeterministicBeacon(b"test-beacon"),
        clock=clock,
        params=params,
        default_listener=reporter,
    )


@pytest.fixture
def piece_factory():
    """Build (tree, PieceData) pairs for pieces with the given leaf counts."""

    def build(*leaf_counts, label="piece"):
        pieces = []
        for i, n in enumerate(leaf_counts):
            tree = MerkleTree(make_leaves(f"{label}-{i}", n))
            pieces.append((tree, PieceData(identifier="0x" + tree.root.hex(), size=n * 32)))
        return pieces

    return build


@pytest.fixture
def prover():
    """Answer the open window's challenges from the prover's trees."""

    def prove(verifier, data_set_id, trees):
        proofs = []
        for challenge in verifier.get_challenges(data_set_id):
            tree = trees[challenge.piece_id]
            proofs.append(
                Proof(
                    leaf=tree.leaves[challenge.local_offset],
                    proof=tree.get_proof(challenge.local_offset),
                    leaf_offset=challenge.offset,
                )
            )
        return proofs

    return prove


@pytest.fixture
def loaded(verifier, piece_factory):
    """A data set holding pieces of 4, 2 and 6 leaves; returns (id, trees)."""
    data_set_id = verifier.create_data_set(PROVIDER)
    built = piece_factory(4, 2, 6)
    piece_ids = verifier.add_pieces(data_set_id, PROVIDER, [data for _, data in built])
    trees = {pid: tree for pid, (tree, _) in zip(piece_ids, built)}
    return data_set_id, trees
