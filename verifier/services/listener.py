"""
listener.py — Data Set Event Listeners
========================================
Listeners are told about data set lifecycle events: creation,
deletion, piece additions and removals, accepted proofs, faults and
period changes.

Notifications are best-effort. notify_listener() runs the hook inside
the same operation that triggered it but logs and discards any
exception it raises, so listener-side bookkeeping can never roll back
the verifier's own state transition.
"""

import logging
import time
from dataclasses import dataclass
from typing import Dict, List, Sequence

logger = logging.getLogger(__name__)


class DataSetListener:
    """Base listener: every hook is a no-op. Override what you need."""

    def on_data_set_created(self, data_set_id: int, storage_provider: str) -> None:
        pass

    def on_data_set_deleted(self, data_set_id: int, deleted_leaf_count: int) -> None:
        pass

    def on_pieces_added(self, data_set_id: int, piece_ids: Sequence[int]) -> None:
        pass

    def on_pieces_deleted(self, data_set_id: int, piece_ids: Sequence[int]) -> None:
        pass

    def on_proof_accepted(self, data_set_id: int, epoch: int, challenges: Sequence) -> None:
        pass

    def on_fault(self, data_set_id: int, epoch: int, missed_challenge_epoch: int) -> None:
        pass

    def on_next_proving_period(self, data_set_id: int, challenge_epoch: int, leaf_count: int) -> None:
        pass

    def on_data_set_empty(self, data_set_id: int) -> None:
        pass

    def on_storage_provider_changed(self, data_set_id: int, old_provider: str, new_provider: str) -> None:
        pass


def notify_listener(listener: DataSetListener, event: str, *args) -> bool:
    """
    Invoke a listener hook, swallowing any failure.

    Args:
        listener: The data set's listener.
        event: Hook name without the "on_" prefix (e.g. "fault").
        *args: Arguments forwarded to the hook.

    Returns:
        True if the hook completed or the listener has no such hook,
        False if it raised.
    """
    try:
        hook = getattr(listener, f"on_{event}", None)
        if hook is None:
            logger.debug("Listener %s has no %s hook", type(listener).__name__, event)
            return True
        hook(*args)
    except Exception:
        logger.exception(
            "Listener %s failed handling %s; state change kept",
            type(listener).__name__,
            event,
        )
        return False
    return True


@dataclass
class FaultRecord:
    """A single missed proving window."""

    data_set_id: int
    epoch: int                   # Epoch the fault was declared at
    missed_challenge_epoch: int  # Challenge epoch of the lapsed window
    recorded_at: float

    def to_dict(self) -> dict:
        return {
            "data_set_id": self.data_set_id,
            "epoch": self.epoch,
            "missed_challenge_epoch": self.missed_challenge_epoch,
            "recorded_at": self.recorded_at,
        }


class FaultReporter(DataSetListener):
    """
    Default listener: keeps a record of faults and accepted proofs
    per data set.
    """

    def __init__(self):
        self._faults: Dict[int, List[FaultRecord]] = {}
        self._last_proven: Dict[int, int] = {}

    def on_proof_accepted(self, data_set_id: int, epoch: int, challenges: Sequence) -> None:
        self._last_proven[data_set_id] = epoch

    def on_fault(self, data_set_id: int, epoch: int, missed_challenge_epoch: int) -> None:
        record = FaultRecord(
            data_set_id=data_set_id,
            epoch=epoch,
            missed_challenge_epoch=missed_challenge_epoch,
            recorded_at=time.time(),
        )
        self._faults.setdefault(data_set_id, []).append(record)
        logger.warning(
            "Fault recorded for data set %d at epoch %d (missed challenge epoch %d)",
            data_set_id,
            epoch,
            missed_challenge_epoch,
        )

    def on_data_set_deleted(self, data_set_id: int, deleted_leaf_count: int) -> None:
        self._last_proven.pop(data_set_id, None)

    def faults(self, data_set_id: int) -> List[FaultRecord]:
        return list(self._faults.get(data_set_id, []))

    def all_faults(self) -> List[FaultRecord]:
        return [record for records in self._faults.values() for record in records]

    def last_proven_epoch(self, data_set_id: int):
        return self._last_proven.get(data_set_id)
