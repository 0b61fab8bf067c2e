"""
entropy.api
-----------

HTTP endpoints for the entropy provider (prefix `/v1`):

- Provider (read path, backed by `RevelationService`):
    GET  /chains                                   → chain id → status
    GET  /commitment/{chain_id}                    → {"commitment": hex}
    GET  /chains/{chain_id}/revelations/{sequence} → {"value": Blob}
    GET  /chains/{chain_id}/mock_revelation/{sequence}  (alias)

- Contract simulation (backed by `CommitRevealVerifier`, optional):
    POST /contract/providers/{provider_id}                          register
    GET  /contract/providers/{provider_id}                          provider info
    POST /contract/providers/{provider_id}/requests                 request
    GET  /contract/providers/{provider_id}/requests/{n}             request info
    POST /contract/providers/{provider_id}/requests/{n}/fulfill     fulfill

`{sequence}` is the contract sequence number; since chain index 0 is the
commitment, request `n` is answered by chain element `n`.

Errors are returned as ``{"error": <kind>, "detail": <message>}`` with the
status carried by the `EntropyError` subclass (see `entropy.errors`).

This module is transport glue only; the logic lives in `entropy.service` and
`entropy.commit_reveal`.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, FastAPI, Path, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .commit_reveal.verifier import CommitRevealVerifier
from .constants import API_PREFIX
from .encoding import BinaryEncoding, Blob
from .errors import EntropyError, InvalidArgument
from .service import RevelationService
from .types.core import ProviderInfo, Request as EntropyRequest
from .utils.bytes import to_hex

logger = logging.getLogger(__name__)


# --------------------------------------------------------------------------------------
# Request/response models
# --------------------------------------------------------------------------------------

class CommitmentResp(BaseModel):
    commitment: str = Field(..., description="d_0 as lowercase hex (no 0x)")


class RevelationResp(BaseModel):
    value: Blob


class RegisterReq(BaseModel):
    commitment: str = Field(..., description="Hex chain commitment d_0")


class RequestReq(BaseModel):
    user_commitment: str = Field(..., description="Hex H(user_secret)")
    requester: Optional[str] = Field(None, description="Optional requester identity")


class RequestResp(BaseModel):
    sequence_number: int


class FulfillReq(BaseModel):
    provider_revelation: str = Field(..., description="Hex chain element for this sequence")
    user_secret: str = Field(..., description="Hex 32-byte secret behind the user commitment")


class FulfillResp(BaseModel):
    output: str = Field(..., description="Hex H(user_secret || provider_revelation)")


def _provider_dict(info: ProviderInfo) -> dict:
    return {
        "provider_id": info.provider_id,
        "sequence_number": info.sequence_number,
        "commitment": to_hex(info.commitment),
        "last_revealed_hash": to_hex(info.last_revealed_hash),
        "last_revealed_sequence": info.last_revealed_sequence,
    }


def _request_dict(req: EntropyRequest) -> dict:
    return {
        "provider_id": req.provider_id,
        "sequence_number": req.sequence_number,
        "user_commitment": to_hex(req.user_commitment),
        "requester": req.requester,
        "status": req.status.value,
        "output": None if req.output is None else to_hex(req.output),
    }


# --------------------------------------------------------------------------------------
# Routers
# --------------------------------------------------------------------------------------

def get_router(service: RevelationService) -> APIRouter:
    r = APIRouter(prefix=API_PREFIX, tags=["entropy"])

    @r.get("/chains")
    def chains() -> dict:
        return {"chains": service.chains()}

    @r.get("/commitment/{chain_id}", response_model=CommitmentResp)
    def commitment(chain_id: str) -> CommitmentResp:
        return CommitmentResp(commitment=service.commitment_hex(chain_id))

    def _revelation(chain_id: str, sequence: int, encoding: BinaryEncoding) -> RevelationResp:
        return RevelationResp(value=service.reveal_encoded(chain_id, sequence, encoding))

    @r.get("/chains/{chain_id}/revelations/{sequence}", response_model=RevelationResp)
    def revelation(
        chain_id: str,
        sequence: int = Path(..., ge=0),
        encoding: BinaryEncoding = Query(BinaryEncoding.HEX),
    ) -> RevelationResp:
        return _revelation(chain_id, sequence, encoding)

    @r.get("/chains/{chain_id}/mock_revelation/{sequence}", response_model=RevelationResp)
    def mock_revelation(
        chain_id: str,
        sequence: int = Path(..., ge=0),
        encoding: BinaryEncoding = Query(BinaryEncoding.HEX),
    ) -> RevelationResp:
        return _revelation(chain_id, sequence, encoding)

    return r


def get_contract_router(verifier: CommitRevealVerifier) -> APIRouter:
    r = APIRouter(prefix=f"{API_PREFIX}/contract", tags=["entropy-contract"])

    def _bad_input(e: ValueError) -> InvalidArgument:
        return InvalidArgument(reason=str(e))

    @r.post("/providers/{provider_id}")
    def register(provider_id: str, req: RegisterReq) -> dict:
        try:
            info = verifier.register(provider_id, req.commitment)
        except ValueError as e:
            raise _bad_input(e) from e
        return _provider_dict(info)

    @r.get("/providers/{provider_id}")
    def provider(provider_id: str) -> dict:
        return _provider_dict(verifier.provider_info(provider_id))

    @r.post("/providers/{provider_id}/requests", response_model=RequestResp)
    def request(provider_id: str, req: RequestReq) -> RequestResp:
        try:
            seq = verifier.request(provider_id, req.user_commitment, req.requester)
        except ValueError as e:
            raise _bad_input(e) from e
        return RequestResp(sequence_number=seq)

    @r.get("/providers/{provider_id}/requests/{sequence}")
    def get_request(provider_id: str, sequence: int = Path(..., ge=1)) -> dict:
        return _request_dict(verifier.get_request(provider_id, sequence))

    @r.post("/providers/{provider_id}/requests/{sequence}/fulfill", response_model=FulfillResp)
    def fulfill(provider_id: str, req: FulfillReq, sequence: int = Path(..., ge=1)) -> FulfillResp:
        try:
            output = verifier.fulfill(provider_id, sequence, req.provider_revelation, req.user_secret)
        except ValueError as e:
            raise _bad_input(e) from e
        return FulfillResp(output=to_hex(output))

    return r


# --------------------------------------------------------------------------------------
# Error mapping + mounting
# --------------------------------------------------------------------------------------

async def _entropy_error_handler(request: Request, exc: EntropyError) -> JSONResponse:
    if exc.http_status >= 500:
        logger.error("entropy error on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=exc.http_status, content=exc.to_dict())


def mount_entropy_api(
    app: FastAPI,
    service: RevelationService,
    *,
    verifier: Optional[CommitRevealVerifier] = None,
) -> None:
    """
    Attach the provider routes (and the contract routes when a verifier is
    given) to `app`, and install the `EntropyError` → JSON error mapping.
    """
    app.add_exception_handler(EntropyError, _entropy_error_handler)
    app.include_router(get_router(service))
    if verifier is not None:
        app.include_router(get_contract_router(verifier))
    logger.info("mounted entropy API at %s (contract routes: %s)", API_PREFIX, verifier is not None)


__all__ = [
    "get_router",
    "get_contract_router",
    "mount_entropy_api",
    "CommitmentResp",
    "RevelationResp",
]
