"""
Instrument API endpoints.

Lists the backend's instruments and triggers batch data refreshes.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query

from ..config import Settings
from ..errors import MalformedInput, MalformedResponse, TransportError
from ..loader.client import SeriesLoader
from ..models import RefreshSummary
from ..validation import validate_date_range, validate_ts_code
from .deps import get_app_settings, get_loader

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("")
async def list_instruments(refresh: bool = False,
                           loader: SeriesLoader = Depends(get_loader)):
    """Get the instrument list, optionally asking the backend to re-download it."""
    try:
        instruments = await loader.fetch_instruments(refresh=refresh)
    except (TransportError, MalformedResponse) as e:
        logger.error(f"Error fetching instrument list: {e}")
        raise HTTPException(status_code=502, detail=f"Failed to fetch instrument list: {e.message}")

    return [instrument.model_dump(by_alias=True) for instrument in instruments]


@router.post("/refresh", response_model=RefreshSummary)
async def refresh_instruments(ts_codes: Optional[List[str]] = Body(None),
                              start_date: Optional[str] = Query(None, alias="startDate"),
                              end_date: Optional[str] = Query(None, alias="endDate"),
                              loader: SeriesLoader = Depends(get_loader),
                              settings: Settings = Depends(get_app_settings)):
    """Refresh daily data for the given instruments, or for every listed one."""
    try:
        date_range = validate_date_range(start_date, end_date,
                                         default_days=settings.default_range_days)
        codes = [validate_ts_code(code) for code in ts_codes] if ts_codes else None
    except MalformedInput as e:
        raise HTTPException(status_code=400, detail=e.message)

    if codes is None:
        try:
            codes = [i.ts_code for i in await loader.fetch_instruments()]
        except (TransportError, MalformedResponse) as e:
            logger.error(f"Error fetching instrument list for refresh: {e}")
            raise HTTPException(status_code=502, detail=f"Failed to fetch instrument list: {e.message}")

    summary = await loader.refresh_all(codes, date_range)
    if summary.failed:
        logger.warning(f"Refresh finished with {len(summary.failed)} failure(s)")
    return summary
