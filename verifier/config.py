"""
config.py — Verifier Configuration
====================================
"""

import os


class Settings:
    """Verifier configuration from environment."""

    HOST: str = os.getenv("VERIFIER_HOST", "0.0.0.0")
    PORT: int = int(os.getenv("VERIFIER_PORT", "8000"))
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Proving schedule (in epochs)
    CHALLENGE_DELAY: int = int(os.getenv("CHALLENGE_DELAY", "150"))
    PROVING_PERIOD: int = int(os.getenv("PROVING_PERIOD", "60"))
    CHALLENGES_PER_PROOF: int = int(os.getenv("CHALLENGES_PER_PROOF", "5"))

    # Randomness beacon; empty URL selects the in-process beacon
    BEACON_URL: str = os.getenv("BEACON_URL", "")
    BEACON_SECRET: str = os.getenv("BEACON_SECRET", "pdp-local-beacon")
    RANDOMNESS_LOOKBACK: int = int(os.getenv("RANDOMNESS_LOOKBACK", "0"))

    # Epoch clock
    GENESIS_TIMESTAMP: float = float(os.getenv("GENESIS_TIMESTAMP", "0"))
    EPOCH_DURATION_SECONDS: float = float(os.getenv("EPOCH_DURATION_SECONDS", "30"))


settings = Settings()
