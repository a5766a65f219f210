from __future__ import annotations

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Request

from availability.api.v1.schemas import RefreshCacheResponseSchema, ReleaseHoldsResponseSchema
from availability.application.use_cases.calendar_cache import CalendarCacheRefresher
from availability.application.use_cases.holds import HoldLifecycleUseCase
from availability.core.config import Settings
from availability.infrastructure.cron_auth import verify_cron_request
from availability.wiring.dependencies import get_cache_refresher, get_hold_use_case, get_now, get_settings

router = APIRouter()
logger = logging.getLogger(__name__)


def require_cron_auth(request: Request, settings: Settings = Depends(get_settings)) -> None:
    if not verify_cron_request(request.headers, settings.CRON_SECRET):
        raise HTTPException(status_code=401, detail="Unauthorized")


@router.get(
    "/release-holds",
    response_model=ReleaseHoldsResponseSchema,
    dependencies=[Depends(require_cron_auth)],
)
def release_holds(
    uc: HoldLifecycleUseCase = Depends(get_hold_use_case),
    now: datetime = Depends(get_now),
):
    try:
        result = uc.sweep(now)
        pending = uc.pending_hold_count()
    except Exception as e:
        logger.exception("Failed to release holds", extra={"error": str(e)})
        raise HTTPException(status_code=500, detail="Failed to release holds")

    return ReleaseHoldsResponseSchema(
        released_count=result.released_count,
        released_ids=result.released_ids,
        pending_count=pending,
    )


@router.get(
    "/refresh-calendar-cache",
    response_model=RefreshCacheResponseSchema,
    dependencies=[Depends(require_cron_auth)],
)
def refresh_calendar_cache(
    refresher: CalendarCacheRefresher = Depends(get_cache_refresher),
    now: datetime = Depends(get_now),
):
    try:
        result = refresher.refresh(now)
    except Exception as e:
        logger.exception("Failed to refresh calendar cache", extra={"error": str(e)})
        raise HTTPException(status_code=500, detail="Failed to refresh calendar cache")

    return RefreshCacheResponseSchema(
        cached_count=result.cached_count,
        deleted_count=result.deleted_count,
        failed_calendars=result.failed_calendars,
    )
