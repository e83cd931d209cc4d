"""
Admin endpoints for runtime configuration.

Interval changes reach the running pollers only when the API shares a
process with the supervisor; otherwise they are saved for the next start.
"""

import asyncpg
import structlog
from fastapi import APIRouter, Depends, HTTPException, status

from src.api.auth import verify_api_key
from src.api.dependencies import get_runtime_config_service
from src.api.models import (
    ConfigResponse,
    ConfigUpdateResponse,
    ErrorResponse,
    IntervalUpdateRequest,
    ThresholdUpdateRequest,
    WindowUpdateRequest,
)
from src.runtime_config.service import ConfigUpdateResult, RuntimeConfigService

logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/admin/config")

_UPDATE_RESPONSES = {
    401: {"model": ErrorResponse, "description": "Invalid API key"},
    422: {"model": ErrorResponse, "description": "Value out of range"},
    503: {"model": ErrorResponse, "description": "Configuration store unavailable"},
}


def _to_response(result: ConfigUpdateResult) -> ConfigUpdateResponse:
    if result.invalid:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=result.message,
        )
    if not result.ok:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=result.message,
        )
    return ConfigUpdateResponse(ok=True, message=result.message, live=result.live)


@router.get(
    "",
    response_model=ConfigResponse,
    responses={401: {"model": ErrorResponse, "description": "Invalid API key"}},
    summary="Show runtime configuration",
)
async def get_config(
    api_key: str = Depends(verify_api_key),
    service: RuntimeConfigService = Depends(get_runtime_config_service),
) -> ConfigResponse:
    try:
        snapshot = await service.snapshot()
    except (asyncpg.PostgresError, asyncpg.InterfaceError) as e:
        logger.error("Failed to read runtime config", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Configuration store unavailable",
        ) from e

    return ConfigResponse(
        intervals=snapshot.intervals,
        report_threshold=snapshot.report_threshold,
        report_interval=snapshot.report_interval,
        live=snapshot.live,
    )


@router.put(
    "/pollers/{name}",
    response_model=ConfigUpdateResponse,
    responses=_UPDATE_RESPONSES,
    summary="Set a poller's interval",
)
async def set_poller_interval(
    name: str,
    request: IntervalUpdateRequest,
    api_key: str = Depends(verify_api_key),
    service: RuntimeConfigService = Depends(get_runtime_config_service),
) -> ConfigUpdateResponse:
    return _to_response(await service.set_poller_interval(name, request.seconds))


@router.post(
    "/pollers/reset",
    response_model=ConfigUpdateResponse,
    responses=_UPDATE_RESPONSES,
    summary="Reset every poller to the default interval",
)
async def reset_intervals(
    api_key: str = Depends(verify_api_key),
    service: RuntimeConfigService = Depends(get_runtime_config_service),
) -> ConfigUpdateResponse:
    return _to_response(await service.reset_all_intervals())


@router.put(
    "/alerts/threshold",
    response_model=ConfigUpdateResponse,
    responses=_UPDATE_RESPONSES,
    summary="Set the alert threshold",
)
async def set_threshold(
    request: ThresholdUpdateRequest,
    api_key: str = Depends(verify_api_key),
    service: RuntimeConfigService = Depends(get_runtime_config_service),
) -> ConfigUpdateResponse:
    return _to_response(await service.set_alert_threshold(request.value))


@router.put(
    "/alerts/window",
    response_model=ConfigUpdateResponse,
    responses=_UPDATE_RESPONSES,
    summary="Set the alert window",
)
async def set_window(
    request: WindowUpdateRequest,
    api_key: str = Depends(verify_api_key),
    service: RuntimeConfigService = Depends(get_runtime_config_service),
) -> ConfigUpdateResponse:
    return _to_response(await service.set_alert_window(request.minutes))
