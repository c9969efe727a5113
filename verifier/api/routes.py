"""
routes.py — Verifier REST API Endpoints
==========================================
REST surface over the PDP verifier. Mutating calls identify the caller
with the X-Provider-Id header.

Endpoints:
    POST   /data-sets                                  — Create a data set
    GET    /data-sets/{id}                             — Data set summary
    DELETE /data-sets/{id}                             — Delete a data set
    POST   /data-sets/{id}/pieces                      — Add pieces
    GET    /data-sets/{id}/pieces                      — List active pieces
    POST   /data-sets/{id}/pieces/delete               — Delete pieces now
    POST   /data-sets/{id}/pieces/schedule-deletion    — Delete at period end
    GET    /data-sets/{id}/resolve/{offset}            — Locate a leaf offset
    GET    /data-sets/{id}/challenges                  — Open window's challenges
    POST   /data-sets/{id}/proofs                      — Submit a proof
    POST   /data-sets/{id}/next-proving-period         — Advance the period
    POST   /data-sets/{id}/storage-provider/propose    — Propose a new owner
    POST   /data-sets/{id}/storage-provider/claim      — Claim ownership
    GET    /faults                                     — Recorded faults
    GET    /health                                     — Health check

Handlers are plain functions: FastAPI runs them in its threadpool,
since a beacon lookup may block on HTTP.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query

from verifier.api.schemas import (
    AddPiecesRequest,
    AddPiecesResponse,
    ChallengeListResponse,
    ChallengeResponse,
    CreateDataSetResponse,
    DataSetResponse,
    FaultListResponse,
    FaultResponse,
    HealthResponse,
    NextProvingPeriodRequest,
    NextProvingPeriodResponse,
    PieceIdsRequest,
    PieceListResponse,
    PieceResponse,
    ProposeProviderRequest,
    SubmitProofRequest,
    SubmitProofResponse,
)
from verifier.config import settings
from verifier.core.errors import MalformedProof, VerifierError
from verifier.core.hashing import decode_hex
from verifier.services.clock import WallClock
from verifier.services.data_set import PieceData, Proof, ProvingParams
from verifier.services.listener import FaultReporter
from verifier.services.randomness import BeaconClient, DeterministicBeacon
from verifier.services.registry import PDPVerifier

logger = logging.getLogger(__name__)

router = APIRouter()

# ── Service Instances (initialized lazily) ─────────────
_fault_reporter: Optional[FaultReporter] = None
_verifier: Optional[PDPVerifier] = None


def get_fault_reporter() -> FaultReporter:
    """Get or create the fault reporter singleton."""
    global _fault_reporter
    if _fault_reporter is None:
        _fault_reporter = FaultReporter()
    return _fault_reporter


def get_verifier() -> PDPVerifier:
    """Get or create the verifier singleton."""
    global _verifier
    if _verifier is None:
        if settings.BEACON_URL:
            randomness = BeaconClient(
                settings.BEACON_URL, lookback=settings.RANDOMNESS_LOOKBACK
            )
        else:
            randomness = DeterministicBeacon(
                settings.BEACON_SECRET.encode(), lookback=settings.RANDOMNESS_LOOKBACK
            )
        _verifier = PDPVerifier(
            randomness=randomness,
            clock=WallClock(settings.GENESIS_TIMESTAMP, settings.EPOCH_DURATION_SECONDS),
            params=ProvingParams(
                challenge_delay=settings.CHALLENGE_DELAY,
                proving_period=settings.PROVING_PERIOD,
                challenges_per_proof=settings.CHALLENGES_PER_PROOF,
            ),
            default_listener=get_fault_reporter(),
        )
    return _verifier


def _http_error(e: VerifierError) -> HTTPException:
    logger.info("Rejected: %s: %s", type(e).__name__, e)
    return HTTPException(status_code=e.status_code, detail=f"{type(e).__name__}: {e}")


def _decode_hex(value: str, what: str) -> bytes:
    try:
        return decode_hex(value)
    except ValueError:
        raise MalformedProof(f"{what} is not valid hex") from None


def _summary(verifier: PDPVerifier, data_set_id: int) -> DataSetResponse:
    return DataSetResponse(**verifier.summary(data_set_id))


# ── Data Sets ──────────────────────────────────────────

@router.post("/data-sets", response_model=CreateDataSetResponse, status_code=201)
def create_data_set(
    provider: str = Header(..., alias="X-Provider-Id"),
    verifier: PDPVerifier = Depends(get_verifier),
):
    """Create an empty data set owned by the calling provider."""
    data_set_id = verifier.create_data_set(provider)
    return CreateDataSetResponse(data_set_id=data_set_id, storage_provider=provider)


@router.get("/data-sets/{data_set_id}", response_model=DataSetResponse)
def get_data_set(data_set_id: int, verifier: PDPVerifier = Depends(get_verifier)):
    try:
        return _summary(verifier, data_set_id)
    except VerifierError as e:
        raise _http_error(e)


@router.delete("/data-sets/{data_set_id}")
def delete_data_set(
    data_set_id: int,
    provider: str = Header(..., alias="X-Provider-Id"),
    verifier: PDPVerifier = Depends(get_verifier),
):
    try:
        deleted_leaves = verifier.delete_data_set(data_set_id, provider)
    except VerifierError as e:
        raise _http_error(e)
    return {"status": "deleted", "data_set_id": data_set_id, "deleted_leaf_count": deleted_leaves}


# ── Pieces ─────────────────────────────────────────────

@router.post("/data-sets/{data_set_id}/pieces", response_model=AddPiecesResponse)
def add_pieces(
    data_set_id: int,
    request: AddPiecesRequest,
    provider: str = Header(..., alias="X-Provider-Id"),
    verifier: PDPVerifier = Depends(get_verifier),
):
    """
    Add pieces to the end of the data set's logical array.

    Every identifier is validated before any piece is admitted.
    """
    pieces = [PieceData(identifier=p.identifier, size=p.size) for p in request.pieces]
    try:
        with verifier.locked():
            piece_ids = verifier.add_pieces(data_set_id, provider, pieces)
            leaf_count = verifier.leaf_count(data_set_id)
    except VerifierError as e:
        raise _http_error(e)
    return AddPiecesResponse(data_set_id=data_set_id, piece_ids=piece_ids, leaf_count=leaf_count)


@router.get("/data-sets/{data_set_id}/pieces", response_model=PieceListResponse)
def list_pieces(
    data_set_id: int,
    offset: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    verifier: PDPVerifier = Depends(get_verifier),
):
    try:
        with verifier.locked():
            pieces = verifier.get_pieces(data_set_id, offset, limit)
            total_count = verifier.piece_count(data_set_id)
    except VerifierError as e:
        raise _http_error(e)
    return PieceListResponse(
        data_set_id=data_set_id,
        total_count=total_count,
        pieces=[PieceResponse(**p.to_dict()) for p in pieces],
    )


@router.post("/data-sets/{data_set_id}/pieces/delete")
def delete_pieces(
    data_set_id: int,
    request: PieceIdsRequest,
    provider: str = Header(..., alias="X-Provider-Id"),
    verifier: PDPVerifier = Depends(get_verifier),
):
    try:
        removed = verifier.delete_pieces(data_set_id, provider, request.piece_ids)
    except VerifierError as e:
        raise _http_error(e)
    return {"status": "deleted", "piece_ids": request.piece_ids, "removed_leaf_count": removed}


@router.post("/data-sets/{data_set_id}/pieces/schedule-deletion")
def schedule_deletion(
    data_set_id: int,
    request: PieceIdsRequest,
    provider: str = Header(..., alias="X-Provider-Id"),
    verifier: PDPVerifier = Depends(get_verifier),
):
    try:
        with verifier.locked():
            verifier.schedule_deletions(data_set_id, provider, request.piece_ids)
            scheduled = verifier.get_scheduled_removals(data_set_id)
    except VerifierError as e:
        raise _http_error(e)
    return {"status": "scheduled", "scheduled_removals": scheduled}


@router.get("/data-sets/{data_set_id}/resolve/{offset}", response_model=ChallengeResponse)
def resolve_offset(data_set_id: int, offset: int, verifier: PDPVerifier = Depends(get_verifier)):
    """Find the piece and local leaf offset of a global leaf offset."""
    try:
        return ChallengeResponse(**verifier.resolve(data_set_id, offset).to_dict())
    except VerifierError as e:
        raise _http_error(e)


# ── Proving ────────────────────────────────────────────

@router.get("/data-sets/{data_set_id}/challenges", response_model=ChallengeListResponse)
def get_challenges(data_set_id: int, verifier: PDPVerifier = Depends(get_verifier)):
    """Challenges of the open window, available once its seed epoch is final."""
    try:
        with verifier.locked():
            challenges = verifier.get_challenges(data_set_id)
            challenge_epoch = verifier.next_challenge_epoch(data_set_id)
    except VerifierError as e:
        raise _http_error(e)
    return ChallengeListResponse(
        data_set_id=data_set_id,
        challenge_epoch=challenge_epoch,
        challenges=[ChallengeResponse(**c.to_dict()) for c in challenges],
    )


@router.post("/data-sets/{data_set_id}/proofs", response_model=SubmitProofResponse)
def submit_proof(
    data_set_id: int,
    request: SubmitProofRequest,
    provider: str = Header(..., alias="X-Provider-Id"),
    verifier: PDPVerifier = Depends(get_verifier),
):
    """
    Submit one Merkle proof per challenge of the open window.

    The submission is accepted or rejected as a whole.
    """
    try:
        proofs = [
            Proof(
                leaf=_decode_hex(p.leaf, "leaf"),
                proof=[_decode_hex(s, "proof element") for s in p.proof],
                leaf_offset=p.leaf_offset,
            )
            for p in request.proofs
        ]
        with verifier.locked():
            challenges = verifier.submit_proof(data_set_id, provider, proofs)
            summary = verifier.summary(data_set_id)
    except VerifierError as e:
        raise _http_error(e)

    return SubmitProofResponse(
        data_set_id=data_set_id,
        proven_epoch=summary["last_proven_epoch"],
        next_challenge_epoch=summary["next_challenge_epoch"],
        challenges=[ChallengeResponse(**c.to_dict()) for c in challenges],
    )


@router.post(
    "/data-sets/{data_set_id}/next-proving-period",
    response_model=NextProvingPeriodResponse,
)
def next_proving_period(
    data_set_id: int,
    request: NextProvingPeriodRequest,
    provider: str = Header(..., alias="X-Provider-Id"),
    verifier: PDPVerifier = Depends(get_verifier),
):
    """Close the current window (recording a fault if unproven) and open the next."""
    try:
        with verifier.locked():
            challenge_epoch = verifier.next_proving_period(
                data_set_id, provider, request.challenge_epoch
            )
            summary = verifier.summary(data_set_id)
    except VerifierError as e:
        raise _http_error(e)

    return NextProvingPeriodResponse(
        data_set_id=data_set_id,
        state=summary["state"],
        challenge_epoch=challenge_epoch,
        proving_deadline=summary["proving_deadline"],
        fault_count=summary["fault_count"],
    )


# ── Ownership ──────────────────────────────────────────

@router.post("/data-sets/{data_set_id}/storage-provider/propose")
def propose_storage_provider(
    data_set_id: int,
    request: ProposeProviderRequest,
    provider: str = Header(..., alias="X-Provider-Id"),
    verifier: PDPVerifier = Depends(get_verifier),
):
    try:
        verifier.propose_storage_provider(data_set_id, provider, request.new_storage_provider)
    except VerifierError as e:
        raise _http_error(e)
    return {"status": "proposed", "proposed_storage_provider": request.new_storage_provider}


@router.post("/data-sets/{data_set_id}/storage-provider/claim")
def claim_storage_provider(
    data_set_id: int,
    provider: str = Header(..., alias="X-Provider-Id"),
    verifier: PDPVerifier = Depends(get_verifier),
):
    try:
        verifier.claim_storage_provider(data_set_id, provider)
    except VerifierError as e:
        raise _http_error(e)
    return {"status": "claimed", "storage_provider": provider}


# ── Faults & Health ────────────────────────────────────

@router.get("/faults", response_model=FaultListResponse)
def list_faults(
    data_set_id: Optional[int] = Query(None),
    reporter: FaultReporter = Depends(get_fault_reporter),
):
    records = reporter.all_faults() if data_set_id is None else reporter.faults(data_set_id)
    return FaultListResponse(
        total_faults=len(records),
        faults=[FaultResponse(**r.to_dict()) for r in records],
    )


@router.get("/health", response_model=HealthResponse)
def health_check(verifier: PDPVerifier = Depends(get_verifier)):
    """Health check endpoint for the verifier."""
    return HealthResponse(
        status="healthy",
        service="pdp-verifier",
        current_epoch=verifier.current_epoch(),
        data_sets=verifier.data_set_count,
    )
