"""
data_set.py — Data Set Aggregate & Proving Period State Machine
=================================================================
A DataSet owns one provider's committed pieces, its own logical array
index and its challenge schedule. Nothing in it is shared with other
data sets.

States:
    EMPTY ──add──▶ ACTIVE ──next period──▶ AWAITING_PROOF
    AWAITING_PROOF ──proof──▶ PROVEN ──next period──▶ AWAITING_PROOF
    AWAITING_PROOF ──next period, no proof──▶ FAULTED ──▶ AWAITING_PROOF

Every operation checks all of its preconditions before touching any
field, so a raised VerifierError leaves the data set unchanged.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence

from verifier.core import merkle
from verifier.core.challenges import derive_challenges
from verifier.core.errors import (
    ChallengeWindowNotOpen,
    DuplicateID,
    InvalidPieceIdentifier,
    InvalidState,
    MalformedProof,
    NotFound,
    PeriodNotElapsed,
    ProofInvalid,
    Unauthorized,
)
from verifier.core.fenwick import LogicalArrayIndex
from verifier.core.hashing import NODE_SIZE
from verifier.services.listener import DataSetListener, notify_listener
from verifier.services.piece_validator import LEAF_SIZE, PieceIdentifierValidator
from verifier.services.randomness import RandomnessSource

logger = logging.getLogger(__name__)

# Upper bound on removals waiting for the next proving period
MAX_ENQUEUED_REMOVALS = 2000


class DataSetState(str, Enum):
    EMPTY = "empty"
    ACTIVE = "active"
    AWAITING_PROOF = "awaiting_proof"
    PROVEN = "proven"
    FAULTED = "faulted"


@dataclass(frozen=True)
class ProvingParams:
    """Schedule parameters shared by every data set of a verifier."""

    challenge_delay: int = 150      # Epochs between acceptance and next seed
    proving_period: int = 60        # Epochs a window stays open after its seed
    challenges_per_proof: int = 5

    def __post_init__(self):
        if self.challenge_delay < 1:
            raise ValueError("challenge_delay must be at least 1 epoch")
        if self.proving_period < 1:
            raise ValueError("proving_period must be at least 1 epoch")
        if self.challenges_per_proof < 1:
            raise ValueError("challenges_per_proof must be at least 1")


@dataclass
class PieceData:
    """A piece as declared by the provider, before validation."""

    identifier: str
    size: int


@dataclass
class Piece:
    """An admitted piece."""

    piece_id: int
    identifier: str
    root: bytes
    size: int

    @property
    def leaf_count(self) -> int:
        return self.size // LEAF_SIZE

    def to_dict(self) -> dict:
        return {
            "piece_id": self.piece_id,
            "identifier": self.identifier,
            "root": self.root.hex(),
            "size": self.size,
            "leaf_count": self.leaf_count,
        }


@dataclass
class Proof:
    """One leaf and its sibling path, answering one challenge."""

    leaf: bytes
    proof: List[bytes] = field(default_factory=list)
    leaf_offset: Optional[int] = None

    def __post_init__(self):
        if len(self.leaf) != NODE_SIZE:
            raise MalformedProof(f"Leaf must be {NODE_SIZE} bytes, got {len(self.leaf)}")
        for i, sibling in enumerate(self.proof):
            if len(sibling) != NODE_SIZE:
                raise MalformedProof(
                    f"Proof element {i} must be {NODE_SIZE} bytes, got {len(sibling)}"
                )


@dataclass(frozen=True)
class Challenge:
    """A challenged global offset and where it lands."""

    offset: int
    piece_id: int
    local_offset: int

    def to_dict(self) -> dict:
        return {
            "offset": self.offset,
            "piece_id": self.piece_id,
            "local_offset": self.local_offset,
        }


class DataSet:
    """
    One provider's pieces under one challenge schedule.

    Attributes:
        data_set_id: Immutable handle.
        storage_provider: Identity allowed to mutate and prove.
        index: The data set's own logical array index.
        next_challenge_epoch: Epoch whose randomness seeds the open window
            (or the earliest one the next window may use). Never decreases.
        proving_deadline: First epoch after the open window.
    """

    def __init__(
        self,
        data_set_id: int,
        storage_provider: str,
        params: ProvingParams,
        validator: PieceIdentifierValidator,
        listener: Optional[DataSetListener] = None,
    ):
        self.data_set_id = data_set_id
        self.storage_provider = storage_provider
        self.proposed_storage_provider: Optional[str] = None
        self.params = params
        self.listener = listener or DataSetListener()
        self._validator = validator

        self.index = LogicalArrayIndex()
        self.pieces: Dict[int, Piece] = {}
        self.next_piece_id = 0
        self.scheduled_removals: List[int] = []

        self.state = DataSetState.EMPTY
        self.live = True
        self.next_challenge_epoch = 0
        self.proving_deadline: Optional[int] = None
        self.last_proven_epoch: Optional[int] = None
        self.fault_count = 0

    # ── Read surface ──────────────────────────────────────

    @property
    def leaf_count(self) -> int:
        return self.index.total_leaves()

    @property
    def total_size(self) -> int:
        return self.index.total_leaves() * LEAF_SIZE

    def get_piece(self, piece_id: int) -> Piece:
        piece = self.pieces.get(piece_id)
        if piece is None:
            raise NotFound(f"Piece {piece_id} not found in data set {self.data_set_id}")
        return piece

    def active_pieces(self, offset: int = 0, limit: Optional[int] = None) -> List[Piece]:
        """Active pieces in id order, paged by position."""
        ids = list(self.index.active_ids())
        end = None if limit is None else offset + limit
        return [self.pieces[i] for i in ids[offset:end]]

    def resolve(self, global_offset: int) -> Challenge:
        piece_id, local_offset = self.index.resolve(global_offset)
        return Challenge(offset=global_offset, piece_id=piece_id, local_offset=local_offset)

    def challenges(self, current_epoch: int, randomness: RandomnessSource) -> List[Challenge]:
        """
        Derive the open window's challenges.

        Raises:
            InvalidState: If no window is open.
            RandomnessUnavailable: If the seed epoch is not final yet.
        """
        self._require_state(DataSetState.AWAITING_PROOF)
        seed = randomness.get_randomness(self.next_challenge_epoch, current_epoch)
        offsets = derive_challenges(
            seed, self.data_set_id, self.index.total_leaves(), self.params.challenges_per_proof
        )
        return [self.resolve(offset) for offset in offsets]

    def summary(self) -> dict:
        return {
            "data_set_id": self.data_set_id,
            "storage_provider": self.storage_provider,
            "proposed_storage_provider": self.proposed_storage_provider,
            "state": self.state.value,
            "live": self.live,
            "leaf_count": self.leaf_count,
            "total_size": self.total_size,
            "piece_count": len(self.pieces),
            "next_piece_id": self.next_piece_id,
            "next_challenge_epoch": self.next_challenge_epoch,
            "proving_deadline": self.proving_deadline,
            "last_proven_epoch": self.last_proven_epoch,
            "fault_count": self.fault_count,
            "scheduled_removals": list(self.scheduled_removals),
        }

    # ── Guards ────────────────────────────────────────────

    def _require_owner(self, caller: str) -> None:
        if caller != self.storage_provider:
            raise Unauthorized(
                f"{caller!r} is not the storage provider of data set {self.data_set_id}"
            )

    def _require_state(self, *allowed: DataSetState) -> None:
        if self.state not in allowed:
            raise InvalidState(
                f"Data set {self.data_set_id} is {self.state.value}; expected one of "
                + ", ".join(s.value for s in allowed)
            )

    def _require_live_ids(self, piece_ids: Sequence[int]) -> None:
        if len(set(piece_ids)) != len(piece_ids):
            raise DuplicateID("Piece ids must be distinct")
        for piece_id in piece_ids:
            if piece_id not in self.index:
                raise NotFound(f"Piece {piece_id} not found in data set {self.data_set_id}")

    # ── Transitions ───────────────────────────────────────

    def add_pieces(self, caller: str, pieces: Sequence[PieceData]) -> List[int]:
        """
        Admit new pieces at the end of the logical array.

        Returns:
            The ids assigned, in input order.
        """
        self._require_owner(caller)
        self._require_state(DataSetState.EMPTY, DataSetState.ACTIVE, DataSetState.PROVEN)
        if not pieces:
            raise InvalidPieceIdentifier("At least one piece must be added")

        roots = [self._validator.validate(p.identifier, p.size) for p in pieces]

        piece_ids = []
        for data, root in zip(pieces, roots):
            piece = Piece(
                piece_id=self.next_piece_id,
                identifier=data.identifier,
                root=root,
                size=data.size,
            )
            self.index.insert_piece(piece.piece_id, piece.leaf_count)
            self.pieces[piece.piece_id] = piece
            piece_ids.append(piece.piece_id)
            self.next_piece_id += 1

        if self.state == DataSetState.EMPTY:
            self.state = DataSetState.ACTIVE

        logger.info(
            "Data set %d: added %d pieces (leaves=%d)",
            self.data_set_id, len(piece_ids), self.leaf_count,
        )
        notify_listener(self.listener, "pieces_added", self.data_set_id, piece_ids)
        return piece_ids

    def delete_pieces(self, caller: str, piece_ids: Sequence[int]) -> int:
        """
        Remove pieces immediately. Only allowed while no window is open.

        Returns:
            Leaves removed.
        """
        self._require_owner(caller)
        self._require_state(DataSetState.ACTIVE, DataSetState.PROVEN)
        self._require_live_ids(piece_ids)

        removed = self._remove(piece_ids)
        self.scheduled_removals = [i for i in self.scheduled_removals if i not in piece_ids]
        logger.info(
            "Data set %d: deleted %d pieces (%d leaves)",
            self.data_set_id, len(piece_ids), removed,
        )
        notify_listener(self.listener, "pieces_deleted", self.data_set_id, list(piece_ids))

        if self.index.total_leaves() == 0:
            self._become_empty()
        return removed

    def schedule_deletions(self, caller: str, piece_ids: Sequence[int]) -> None:
        """
        Queue pieces for removal at the next proving period boundary.

        Allowed in any state; queued pieces stay challengeable until the
        period ends, so an open window's challenges keep resolving.
        """
        self._require_owner(caller)
        self._require_live_ids(piece_ids)
        for piece_id in piece_ids:
            if piece_id in self.scheduled_removals:
                raise DuplicateID(f"Piece {piece_id} is already scheduled for removal")
        if len(self.scheduled_removals) + len(piece_ids) > MAX_ENQUEUED_REMOVALS:
            raise InvalidState(
                f"At most {MAX_ENQUEUED_REMOVALS} removals may be queued"
            )

        self.scheduled_removals.extend(piece_ids)
        logger.info(
            "Data set %d: scheduled %d piece removals (%d queued)",
            self.data_set_id, len(piece_ids), len(self.scheduled_removals),
        )

    def submit_proof(
        self,
        caller: str,
        proofs: Sequence[Proof],
        current_epoch: int,
        randomness: RandomnessSource,
    ) -> List[Challenge]:
        """
        Check one proof per challenge of the open window.

        All proofs must verify; otherwise the whole submission is
        rejected with ProofInvalid and nothing changes.

        Returns:
            The challenges that were proven.
        """
        self._require_owner(caller)
        self._require_state(DataSetState.AWAITING_PROOF)
        if not self.next_challenge_epoch <= current_epoch < self.proving_deadline:
            raise ChallengeWindowNotOpen(
                f"Data set {self.data_set_id} accepts proofs in epochs "
                f"[{self.next_challenge_epoch}, {self.proving_deadline}), "
                f"not {current_epoch}"
            )

        challenges = self.challenges(current_epoch, randomness)
        if len(proofs) != len(challenges):
            raise ProofInvalid(
                f"Expected {len(challenges)} proofs, got {len(proofs)}"
            )

        for i, (challenge, proof) in enumerate(zip(challenges, proofs)):
            if proof.leaf_offset is not None and proof.leaf_offset != challenge.offset:
                raise ProofInvalid(
                    f"Proof {i} answers offset {proof.leaf_offset}, "
                    f"challenge was {challenge.offset}"
                )
            piece = self.pieces[challenge.piece_id]
            if not merkle.verify(
                proof.leaf, challenge.local_offset, proof.proof, piece.root, piece.leaf_count
            ):
                raise ProofInvalid(
                    f"Proof {i} failed for piece {piece.piece_id} "
                    f"at local offset {challenge.local_offset}"
                )

        self.state = DataSetState.PROVEN
        self.last_proven_epoch = current_epoch
        self.next_challenge_epoch = current_epoch + self.params.challenge_delay
        logger.info(
            "Data set %d: proof accepted at epoch %d (%d challenges), next seed >= %d",
            self.data_set_id, current_epoch, len(challenges), self.next_challenge_epoch,
        )
        notify_listener(
            self.listener, "proof_accepted", self.data_set_id, current_epoch, challenges
        )
        return challenges

    def next_proving_period(
        self,
        caller: str,
        current_epoch: int,
        challenge_epoch: Optional[int] = None,
    ) -> Optional[int]:
        """
        Close the current window (if any) and open the next one.

        A window that lapses without an accepted proof is recorded as a
        fault; the data set still moves on, so a provider that lost data
        can always make progress by accepting the fault.

        Args:
            caller: Must be the storage provider.
            current_epoch: Epoch of this operation.
            challenge_epoch: Requested seed epoch; defaults to the earliest
                permitted one.

        Returns:
            The new window's challenge epoch, or None if the data set
            became empty.
        """
        self._require_owner(caller)
        self._require_state(
            DataSetState.ACTIVE, DataSetState.AWAITING_PROOF, DataSetState.PROVEN
        )
        if self.state != DataSetState.ACTIVE and current_epoch < self.proving_deadline:
            raise PeriodNotElapsed(
                f"Proving period of data set {self.data_set_id} ends at epoch "
                f"{self.proving_deadline}, now {current_epoch}"
            )
        earliest = max(current_epoch + self.params.challenge_delay, self.next_challenge_epoch)
        if challenge_epoch is not None and challenge_epoch < earliest:
            raise ChallengeWindowNotOpen(
                f"Challenge epoch {challenge_epoch} is before the earliest "
                f"permitted epoch {earliest}"
            )

        if self.state == DataSetState.AWAITING_PROOF:
            self.state = DataSetState.FAULTED
            self.fault_count += 1
            logger.warning(
                "Data set %d: window with challenge epoch %d lapsed without proof",
                self.data_set_id, self.next_challenge_epoch,
            )
            notify_listener(
                self.listener, "fault", self.data_set_id, current_epoch, self.next_challenge_epoch
            )

        if self.scheduled_removals:
            removed_ids = self.scheduled_removals
            self.scheduled_removals = []
            self._remove(removed_ids)
            notify_listener(self.listener, "pieces_deleted", self.data_set_id, removed_ids)

        if self.index.total_leaves() == 0:
            self._become_empty()
            return None

        self.next_challenge_epoch = challenge_epoch if challenge_epoch is not None else earliest
        self.proving_deadline = self.next_challenge_epoch + self.params.proving_period
        self.state = DataSetState.AWAITING_PROOF
        logger.info(
            "Data set %d: window opened, challenge epoch %d, deadline %d, leaves %d",
            self.data_set_id, self.next_challenge_epoch, self.proving_deadline, self.leaf_count,
        )
        notify_listener(
            self.listener, "next_proving_period",
            self.data_set_id, self.next_challenge_epoch, self.leaf_count,
        )
        return self.next_challenge_epoch

    def propose_storage_provider(self, caller: str, new_provider: str) -> None:
        """First step of an ownership transfer; proposing the owner cancels."""
        self._require_owner(caller)
        self.proposed_storage_provider = None if new_provider == caller else new_provider

    def claim_storage_provider(self, caller: str) -> None:
        """Second step of an ownership transfer, made by the proposed provider."""
        if self.proposed_storage_provider is None or caller != self.proposed_storage_provider:
            raise Unauthorized(
                f"{caller!r} has not been proposed for data set {self.data_set_id}"
            )
        old_provider = self.storage_provider
        self.storage_provider = caller
        self.proposed_storage_provider = None
        logger.info(
            "Data set %d: storage provider changed %s -> %s",
            self.data_set_id, old_provider, caller,
        )
        notify_listener(
            self.listener, "storage_provider_changed", self.data_set_id, old_provider, caller
        )

    def delete(self, caller: str) -> int:
        """Retire the data set and release its pieces. Returns the leaf count it held."""
        self._require_owner(caller)
        deleted_leaves = self.leaf_count
        self.live = False
        self.index = LogicalArrayIndex()
        self.pieces = {}
        self.scheduled_removals = []
        self.proposed_storage_provider = None
        self.proving_deadline = None
        logger.info("Data set %d deleted (%d leaves)", self.data_set_id, deleted_leaves)
        notify_listener(self.listener, "data_set_deleted", self.data_set_id, deleted_leaves)
        return deleted_leaves

    # ── Internals ─────────────────────────────────────────

    def _remove(self, piece_ids: Sequence[int]) -> int:
        removed = 0
        for piece_id in piece_ids:
            removed += self.index.delete_piece(piece_id)
            del self.pieces[piece_id]
        return removed

    def _become_empty(self) -> None:
        self.state = DataSetState.EMPTY
        self.proving_deadline = None
        logger.info("Data set %d is empty", self.data_set_id)
        notify_listener(self.listener, "data_set_empty", self.data_set_id)
