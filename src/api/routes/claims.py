"""Claim submission endpoint."""

import time

import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse

from src.api.auth import verify_api_key
from src.api.dependencies import get_claim_service
from src.api.models import (
    ClaimAcceptedResponse,
    ClaimRejectedResponse,
    ClaimRequest,
    ErrorResponse,
)
from src.claims.schemas import InvalidClaimError, NotRegisteredError
from src.claims.service import ClaimService

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.post(
    "/claims",
    status_code=status.HTTP_201_CREATED,
    response_model=ClaimAcceptedResponse,
    responses={
        401: {"model": ErrorResponse, "description": "Invalid API key"},
        403: {"model": ErrorResponse, "description": "Scope or user not registered"},
        422: {"model": ErrorResponse, "description": "Invalid category or content"},
        429: {"model": ClaimRejectedResponse, "description": "Actor is cooling down"},
    },
    summary="Submit a claim",
    description=(
        "Report that something is broken. One claim per actor per cooldown "
        "window; enough distinct reporters in the alert window notify every "
        "subscriber once."
    ),
)
async def submit_claim(
    request: ClaimRequest,
    api_key: str = Depends(verify_api_key),
    service: ClaimService = Depends(get_claim_service),
):
    start_time = time.perf_counter()

    try:
        outcome = await service.submit(
            request.actor_id,
            request.category,
            scope_id=request.scope_id,
            content=request.content,
        )
    except InvalidClaimError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e),
        ) from e
    except NotRegisteredError as e:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=str(e),
        ) from e

    latency_ms = round((time.perf_counter() - start_time) * 1000, 2)

    if not outcome.accepted:
        logger.info(
            "Claim rejected by cooldown",
            actor_id=request.actor_id,
            retry_after=outcome.retry_after.isoformat(),
            latency_ms=latency_ms,
        )
        body = ClaimRejectedResponse(
            detail="You already reported recently",
            retry_after=outcome.retry_after,
        )
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content=body.model_dump(mode="json"),
        )

    return ClaimAcceptedResponse(
        claim_id=outcome.claim.id,
        category=outcome.claim.category,
        created_at=outcome.claim.created_at,
        similar_count=outcome.similar_count,
        alert_triggered=outcome.dispatch is not None and outcome.dispatch.triggered,
    )
