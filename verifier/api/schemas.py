"""
schemas.py — Pydantic Request/Response Models
=================================================
Data models for the verifier REST API. Binary values (roots, leaves,
proof siblings, seeds) travel as hex strings.
"""

from typing import List, Optional

from pydantic import BaseModel, Field


class CreateDataSetResponse(BaseModel):
    data_set_id: int
    storage_provider: str


class DataSetResponse(BaseModel):
    """Summary of a data set's state."""

    data_set_id: int
    storage_provider: str
    proposed_storage_provider: Optional[str] = None
    state: str
    live: bool
    leaf_count: int
    total_size: int              # Bytes across all active pieces
    piece_count: int
    next_piece_id: int
    next_challenge_epoch: int
    proving_deadline: Optional[int] = None
    last_proven_epoch: Optional[int] = None
    fault_count: int
    scheduled_removals: List[int]


class PieceRequest(BaseModel):
    identifier: str              # Content identifier (hex root digest by default)
    size: int                    # Bytes, a multiple of 32


class AddPiecesRequest(BaseModel):
    pieces: List[PieceRequest] = Field(..., min_length=1)


class AddPiecesResponse(BaseModel):
    data_set_id: int
    piece_ids: List[int]
    leaf_count: int


class PieceIdsRequest(BaseModel):
    piece_ids: List[int] = Field(..., min_length=1)


class PieceResponse(BaseModel):
    piece_id: int
    identifier: str
    root: str
    size: int
    leaf_count: int


class PieceListResponse(BaseModel):
    data_set_id: int
    total_count: int
    pieces: List[PieceResponse]


class ChallengeResponse(BaseModel):
    offset: int                  # Global leaf offset
    piece_id: int
    local_offset: int            # Leaf offset within the piece


class ChallengeListResponse(BaseModel):
    data_set_id: int
    challenge_epoch: int
    challenges: List[ChallengeResponse]


class ProofRequest(BaseModel):
    leaf: str                    # Hex, 32 bytes
    proof: List[str]             # Hex siblings from leaf to root
    leaf_offset: Optional[int] = None


class SubmitProofRequest(BaseModel):
    proofs: List[ProofRequest]


class SubmitProofResponse(BaseModel):
    data_set_id: int
    proven_epoch: int
    next_challenge_epoch: int
    challenges: List[ChallengeResponse]


class NextProvingPeriodRequest(BaseModel):
    challenge_epoch: Optional[int] = None


class NextProvingPeriodResponse(BaseModel):
    data_set_id: int
    state: str
    challenge_epoch: Optional[int] = None
    proving_deadline: Optional[int] = None
    fault_count: int


class ProposeProviderRequest(BaseModel):
    new_storage_provider: str


class FaultResponse(BaseModel):
    data_set_id: int
    epoch: int
    missed_challenge_epoch: int
    recorded_at: float


class FaultListResponse(BaseModel):
    total_faults: int
    faults: List[FaultResponse]


class HealthResponse(BaseModel):
    """Verifier health check response."""

    status: str
    service: str
    current_epoch: int
    data_sets: int
