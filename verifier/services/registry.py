"""
registry.py — Proof of Data Possession Verifier
=================================================
The single verifier instance that owns every data set. It maps data
set ids to independent DataSet aggregates, stamps each operation with
the current epoch and hands the beacon to the state machine.

Operations and queries are serialised under one lock so each runs to
completion before the next starts. Data sets never reference each
other; a fault or failure in one cannot affect another.
"""

import logging
import threading
from typing import Dict, List, Optional, Sequence

from verifier.core.errors import NotFound
from verifier.services.data_set import (
    Challenge,
    DataSet,
    PieceData,
    Piece,
    Proof,
    ProvingParams,
)
from verifier.services.listener import DataSetListener, notify_listener
from verifier.services.piece_validator import HexDigestValidator, PieceIdentifierValidator
from verifier.services.randomness import RandomnessSource

logger = logging.getLogger(__name__)


class PDPVerifier:
    """
    Registry of data sets plus the operations providers call on them.

    Provides:
        - Data set creation, deletion and ownership transfer
        - Piece addition, immediate deletion and scheduled deletion
        - Proof submission and proving period advancement
        - Side-effect-free queries (offset resolution, sizes, epochs)
    """

    def __init__(
        self,
        randomness: RandomnessSource,
        clock,
        params: Optional[ProvingParams] = None,
        validator: Optional[PieceIdentifierValidator] = None,
        default_listener: Optional[DataSetListener] = None,
    ):
        """
        Initialize the verifier.

        Args:
            randomness: Beacon the challenge seeds come from.
            clock: Object whose current_epoch() gives the epoch of each call.
            params: Proving schedule for every data set.
            validator: Piece identifier validator.
            default_listener: Listener for data sets created without one.
        """
        self.randomness = randomness
        self.clock = clock
        self.params = params or ProvingParams()
        self.validator = validator or HexDigestValidator()
        self.default_listener = default_listener or DataSetListener()

        self._data_sets: Dict[int, DataSet] = {}
        self._next_data_set_id = 0
        self._lock = threading.RLock()

        logger.info(
            "PDPVerifier initialized (challenge_delay=%d, proving_period=%d, "
            "challenges_per_proof=%d)",
            self.params.challenge_delay,
            self.params.proving_period,
            self.params.challenges_per_proof,
        )

    # ── Lookup ────────────────────────────────────────────

    def get(self, data_set_id: int) -> DataSet:
        """Return a live data set or raise NotFound."""
        with self._lock:
            data_set = self._data_sets.get(data_set_id)
            if data_set is None or not data_set.live:
                raise NotFound(f"Data set {data_set_id} not found")
            return data_set

    def data_set_live(self, data_set_id: int) -> bool:
        with self._lock:
            data_set = self._data_sets.get(data_set_id)
            return data_set is not None and data_set.live

    def piece_live(self, data_set_id: int, piece_id: int) -> bool:
        with self._lock:
            return self.data_set_live(data_set_id) and piece_id in self.get(data_set_id).index

    @property
    def next_data_set_id(self) -> int:
        return self._next_data_set_id

    def current_epoch(self) -> int:
        return self.clock.current_epoch()

    # ── Data set lifecycle ────────────────────────────────

    def create_data_set(self, caller: str, listener: Optional[DataSetListener] = None) -> int:
        """Create an empty data set owned by `caller`; returns its id."""
        with self._lock:
            data_set_id = self._next_data_set_id
            self._next_data_set_id += 1
            data_set = DataSet(
                data_set_id=data_set_id,
                storage_provider=caller,
                params=self.params,
                validator=self.validator,
                listener=listener or self.default_listener,
            )
            self._data_sets[data_set_id] = data_set

        logger.info("Created data set %d for provider %s", data_set_id, caller)
        notify_listener(data_set.listener, "data_set_created", data_set_id, caller)
        return data_set_id

    def delete_data_set(self, data_set_id: int, caller: str) -> int:
        with self._lock:
            return self.get(data_set_id).delete(caller)

    def propose_storage_provider(self, data_set_id: int, caller: str, new_provider: str) -> None:
        with self._lock:
            self.get(data_set_id).propose_storage_provider(caller, new_provider)

    def claim_storage_provider(self, data_set_id: int, caller: str) -> None:
        with self._lock:
            self.get(data_set_id).claim_storage_provider(caller)

    # ── Pieces ────────────────────────────────────────────

    def add_pieces(self, data_set_id: int, caller: str, pieces: Sequence[PieceData]) -> List[int]:
        with self._lock:
            return self.get(data_set_id).add_pieces(caller, pieces)

    def delete_pieces(self, data_set_id: int, caller: str, piece_ids: Sequence[int]) -> int:
        with self._lock:
            return self.get(data_set_id).delete_pieces(caller, piece_ids)

    def schedule_deletions(self, data_set_id: int, caller: str, piece_ids: Sequence[int]) -> None:
        with self._lock:
            self.get(data_set_id).schedule_deletions(caller, piece_ids)

    # ── Proving ───────────────────────────────────────────

    def submit_proof(self, data_set_id: int, caller: str, proofs: Sequence[Proof]) -> List[Challenge]:
        with self._lock:
            return self.get(data_set_id).submit_proof(
                caller, proofs, self.current_epoch(), self.randomness
            )

    def next_proving_period(
        self, data_set_id: int, caller: str, challenge_epoch: Optional[int] = None
    ) -> Optional[int]:
        with self._lock:
            return self.get(data_set_id).next_proving_period(
                caller, self.current_epoch(), challenge_epoch
            )

    # ── Queries ───────────────────────────────────────────

    def locked(self):
        """
        Hold the registry lock across several calls.

        Use it when a mutation and the reads that report its outcome must
        observe one state:

            with verifier.locked():
                verifier.submit_proof(data_set_id, caller, proofs)
                summary = verifier.summary(data_set_id)
        """
        return self._lock

    def summary(self, data_set_id: int) -> dict:
        with self._lock:
            return self.get(data_set_id).summary()

    def resolve(self, data_set_id: int, global_offset: int) -> Challenge:
        with self._lock:
            return self.get(data_set_id).resolve(global_offset)

    def find_piece_ids(self, data_set_id: int, offsets: Sequence[int]) -> List[Challenge]:
        with self._lock:
            data_set = self.get(data_set_id)
            return [data_set.resolve(offset) for offset in offsets]

    def total_size(self, data_set_id: int) -> int:
        with self._lock:
            return self.get(data_set_id).total_size

    def leaf_count(self, data_set_id: int) -> int:
        with self._lock:
            return self.get(data_set_id).leaf_count

    def next_challenge_epoch(self, data_set_id: int) -> int:
        with self._lock:
            return self.get(data_set_id).next_challenge_epoch

    def get_storage_provider(self, data_set_id: int) -> str:
        with self._lock:
            return self.get(data_set_id).storage_provider

    def get_piece(self, data_set_id: int, piece_id: int) -> Piece:
        with self._lock:
            return self.get(data_set_id).get_piece(piece_id)

    def get_pieces(self, data_set_id: int, offset: int = 0, limit: Optional[int] = None) -> List[Piece]:
        with self._lock:
            return self.get(data_set_id).active_pieces(offset, limit)

    def piece_count(self, data_set_id: int) -> int:
        with self._lock:
            return len(self.get(data_set_id).pieces)

    def get_scheduled_removals(self, data_set_id: int) -> List[int]:
        with self._lock:
            return list(self.get(data_set_id).scheduled_removals)

    def get_challenges(self, data_set_id: int) -> List[Challenge]:
        """Challenges of the open window, once its seed is final."""
        with self._lock:
            return self.get(data_set_id).challenges(self.current_epoch(), self.randomness)

    @property
    def data_set_count(self) -> int:
        with self._lock:
            return sum(1 for data_set in self._data_sets.values() if data_set.live)
