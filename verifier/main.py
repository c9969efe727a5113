"""
main.py — Verifier Service Entrypoint
========================================
Runs the FastAPI service exposing the proof of data possession
verifier: data set management, challenge derivation and proof
checking.

Run with:
    uvicorn verifier.main:app --host 0.0.0.0 --port 8000
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from verifier.api.routes import router
from verifier.config import settings

# ── Logging Configuration ─────────────────────────────────
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("verifier")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("Verifier starting on %s:%d", settings.HOST, settings.PORT)
    logger.info("Beacon:          %s", settings.BEACON_URL or "in-process")
    logger.info("Challenge delay: %d epochs", settings.CHALLENGE_DELAY)
    logger.info("Proving period:  %d epochs", settings.PROVING_PERIOD)
    logger.info("Challenges:      %d per proof", settings.CHALLENGES_PER_PROOF)
    yield
    logger.info("Verifier shutting down")


# ── FastAPI Application ───────────────────────────────────
app = FastAPI(
    title="Proof of Data Possession — Verifier API",
    description=(
        "Tracks providers' data sets and checks periodic Merkle proofs "
        "that they still hold the committed data.\n\n"
        "**Prove:** add pieces → open proving period → seed epoch "
        "matures → derive challenges → submit proofs → next period"
    ),
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.include_router(router)
