"""
randomness.py — Beacon Randomness Sources
===========================================
Supplies the per-epoch seeds challenges are drawn from.

A seed is only handed out once its epoch is final: strictly before
the caller's current epoch minus the configured lookback. Anything
else is reported as RandomnessUnavailable, and the proving step that
needed it waits until the epoch matures.

Sources:
    DeterministicBeacon — in-process, SHA-256(secret || epoch)
    BeaconClient        — HTTP beacon service via httpx
"""

import logging
from typing import Optional

import httpx

from verifier.core.errors import RandomnessUnavailable
from verifier.core.hashing import NODE_SIZE, decode_hex, sha256_hash

logger = logging.getLogger(__name__)


class RandomnessSource:
    """Base class enforcing the finality rule for every source."""

    def __init__(self, lookback: int = 0):
        """
        Args:
            lookback: Extra epochs a seed must age beyond the current epoch.
        """
        if lookback < 0:
            raise ValueError("Lookback must not be negative")
        self.lookback = lookback

    def is_final(self, epoch: int, current_epoch: int) -> bool:
        return 0 <= epoch < current_epoch - self.lookback

    def get_randomness(self, epoch: int, current_epoch: int) -> bytes:
        """
        Return the 32-byte seed for `epoch` as seen at `current_epoch`.

        Raises:
            RandomnessUnavailable: If the epoch is not final yet or the
                underlying source could not provide it.
        """
        if not self.is_final(epoch, current_epoch):
            raise RandomnessUnavailable(
                f"Randomness for epoch {epoch} is not final at epoch "
                f"{current_epoch} (lookback={self.lookback})"
            )
        seed = self._fetch(epoch)
        if len(seed) != NODE_SIZE:
            raise RandomnessUnavailable(
                f"Beacon returned {len(seed)} bytes for epoch {epoch}"
            )
        return seed

    def _fetch(self, epoch: int) -> bytes:
        raise NotImplementedError


class DeterministicBeacon(RandomnessSource):
    """
    Local beacon deriving each epoch's seed from a fixed secret.

    Intended for development and tests; observers who know the secret
    can recompute every seed.
    """

    def __init__(self, secret: bytes = b"pdp-local-beacon", lookback: int = 0):
        super().__init__(lookback=lookback)
        self._secret = secret

    def _fetch(self, epoch: int) -> bytes:
        return sha256_hash(self._secret + epoch.to_bytes(8, "big"))


class BeaconClient(RandomnessSource):
    """
    Client for an HTTP randomness beacon.

    Expects `GET {beacon_url}/randomness/{epoch}` to answer with JSON
    `{"epoch": <int>, "randomness": "<64 hex digits>"}`.
    """

    def __init__(
        self,
        beacon_url: str,
        lookback: int = 0,
        timeout: float = 10,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """
        Initialize the beacon client.

        Args:
            beacon_url: Base URL of the beacon service.
            lookback: Extra epochs a seed must age beyond the current epoch.
            timeout: Request timeout in seconds.
            transport: Optional httpx transport (used to stub the beacon).
        """
        super().__init__(lookback=lookback)
        self.beacon_url = beacon_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport
        logger.info("BeaconClient initialized with beacon at %s", self.beacon_url)

    def _fetch(self, epoch: int) -> bytes:
        try:
            with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
                response = client.get(f"{self.beacon_url}/randomness/{epoch}")
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Beacon lookup for epoch %d failed: %s", epoch, e)
            raise RandomnessUnavailable(
                f"Beacon lookup for epoch {epoch} failed: {e}"
            ) from e

        try:
            return decode_hex(data["randomness"])
        except (KeyError, TypeError, AttributeError, ValueError) as e:
            raise RandomnessUnavailable(
                f"Malformed beacon response for epoch {epoch}"
            ) from e
