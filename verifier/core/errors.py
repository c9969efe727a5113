"""
errors.py — Verifier Error Taxonomy
=====================================
Every failure the verifier can report is a VerifierError subclass.
All of them are raised before any state is mutated, so catching one
means the data set is exactly as it was before the call.

Each class carries the HTTP status the REST layer answers with.
"""


class VerifierError(Exception):
    """Base class for all verifier failures."""

    status_code: int = 400


# ── Input validation ─────────────────────────────────────

class InvalidPieceIdentifier(VerifierError):
    """A piece identifier or its declared size was rejected."""


class OffsetOutOfRange(VerifierError):
    """A global leaf offset lies outside the data set."""


class MalformedProof(VerifierError):
    """A proof element is not a 32-byte value."""


# ── Authorization ────────────────────────────────────────

class Unauthorized(VerifierError):
    """The caller is not allowed to perform the operation."""

    status_code = 403


# ── Proof errors ─────────────────────────────────────────

class ProofInvalid(VerifierError):
    """A proof submission failed verification as a whole."""

    status_code = 422


class InsufficientLeaves(VerifierError):
    """Challenges cannot be drawn from a data set with no leaves."""

    status_code = 409


# ── Consistency errors ───────────────────────────────────

class DuplicateID(VerifierError):
    """An id that must be fresh is already in use."""

    status_code = 409


class NotFound(VerifierError):
    """The data set or piece does not exist (or no longer exists)."""

    status_code = 404


# ── State machine errors ─────────────────────────────────

class InvalidState(VerifierError):
    """The operation is not permitted in the data set's current state."""

    status_code = 409


class ChallengeWindowNotOpen(VerifierError):
    """A proof was submitted outside the open challenge window."""

    status_code = 409


class PeriodNotElapsed(VerifierError):
    """The proving period was advanced before its deadline."""

    status_code = 409


# ── Environment errors ───────────────────────────────────

class RandomnessUnavailable(VerifierError):
    """Beacon randomness for the required epoch is not available yet."""

    status_code = 503
