"""
clock.py — Epoch Clocks
=========================
The verifier measures time in chain epochs. WallClock derives the
current epoch from a genesis timestamp and a fixed epoch duration;
ManualClock is advanced explicitly by its owner.
"""

import time
from typing import Optional


class WallClock:
    """Epochs elapsed since genesis at a fixed duration per epoch."""

    def __init__(self, genesis_timestamp: float, epoch_duration: float = 30):
        if epoch_duration <= 0:
            raise ValueError("Epoch duration must be positive")
        self.genesis_timestamp = genesis_timestamp
        self.epoch_duration = epoch_duration

    def current_epoch(self, now: Optional[float] = None) -> int:
        now = time.time() if now is None else now
        return max(0, int((now - self.genesis_timestamp) // self.epoch_duration))


class ManualClock:
    """A clock that only moves when told to."""

    def __init__(self, epoch: int = 0):
        self.epoch = epoch

    def current_epoch(self) -> int:
        return self.epoch

    def advance(self, epochs: int = 1) -> int:
        if epochs < 0:
            raise ValueError("Epochs only move forward")
        self.epoch += epochs
        return self.epoch
