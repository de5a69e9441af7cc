"""
Detail View API endpoints.

Builds the K-line chart model, the ECharts option, the data table and a
server-side chart image for one instrument and date range.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from ..charts.renderer import EChartsRenderer, MatplotlibRenderer, ResizeRegistry
from ..config import Settings
from ..errors import MalformedInput
from ..loader.client import SeriesLoader
from ..session import ViewSession
from .deps import get_app_settings, get_loader, make_builder

router = APIRouter()
logger = logging.getLogger(__name__)


async def _load(session: ViewSession, ts_code: str,
                start_date: Optional[str], end_date: Optional[str]):
    """Run a load, translating failures into HTTP errors."""
    try:
        model = await session.load(ts_code, start_date, end_date)
    except MalformedInput as e:
        raise HTTPException(status_code=400, detail=e.message)

    if model is None:
        raise HTTPException(
            status_code=502,
            detail=session.notification or "Failed to load price data"
        )
    return model


@router.get("/{ts_code}/chart")
async def get_chart(ts_code: str,
                    start_date: Optional[str] = Query(None, alias="startDate"),
                    end_date: Optional[str] = Query(None, alias="endDate"),
                    loader: SeriesLoader = Depends(get_loader),
                    settings: Settings = Depends(get_app_settings)):
    """Chart model, ECharts option and table rows for the detail view."""
    session = ViewSession(
        loader,
        builder=make_builder(settings),
        renderer=EChartsRenderer(),
        ma_source=settings.ma_source,
        default_range_days=settings.default_range_days,
    )
    try:
        model = await _load(session, ts_code, start_date, end_date)
        date_range = session.request.date_range
        return {
            "tsCode": session.request.ts_code,
            "title": model.title,
            "startDate": date_range.start_date.isoformat(),
            "endDate": date_range.end_date.isoformat(),
            "empty": model.is_empty,
            "message": session.notification,
            "model": model.model_dump(mode="json"),
            "option": session.renderer.render(),
            "rows": [row.model_dump(by_alias=True) for row in session.rows],
        }
    finally:
        session.close()


@router.get("/{ts_code}/table")
async def get_table(ts_code: str,
                    start_date: Optional[str] = Query(None, alias="startDate"),
                    end_date: Optional[str] = Query(None, alias="endDate"),
                    loader: SeriesLoader = Depends(get_loader),
                    settings: Settings = Depends(get_app_settings)):
    """Table rows only."""
    session = ViewSession(loader, builder=make_builder(settings),
                          default_range_days=settings.default_range_days)
    await _load(session, ts_code, start_date, end_date)
    return {
        "tsCode": session.request.ts_code,
        "message": session.notification,
        "rows": [row.model_dump(by_alias=True) for row in session.rows],
    }


@router.get("/{ts_code}/chart-image")
async def get_chart_image(ts_code: str,
                          start_date: Optional[str] = Query(None, alias="startDate"),
                          end_date: Optional[str] = Query(None, alias="endDate"),
                          zoom_start: float = Query(0.0, alias="zoomStart", ge=0, le=100),
                          zoom_end: float = Query(100.0, alias="zoomEnd", ge=0, le=100),
                          width: Optional[int] = Query(None, ge=200, le=4000),
                          height: Optional[int] = Query(None, ge=200, le=4000),
                          loader: SeriesLoader = Depends(get_loader),
                          settings: Settings = Depends(get_app_settings)):
    """K-line chart rendered server-side as a base64 PNG data URL.

    `width` and `height` (pixels) resize the figure through the view's
    resize registry before drawing.
    """
    if zoom_start > zoom_end:
        raise HTTPException(status_code=400, detail="zoomStart must not exceed zoomEnd")

    registry = ResizeRegistry()
    session = ViewSession(
        loader,
        builder=make_builder(settings),
        renderer=MatplotlibRenderer(registry),
        ma_source=settings.ma_source,
        default_range_days=settings.default_range_days,
    )
    try:
        model = await _load(session, ts_code, start_date, end_date)
        session.set_zoom("price", zoom_start, zoom_end)
        if width and height:
            registry.dispatch(width, height)
        image = session.renderer.render()
        return {
            "tsCode": session.request.ts_code,
            "empty": model.is_empty,
            "message": session.notification,
            "image": image,
        }
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error generating chart image for {ts_code}: {e}")
        raise HTTPException(
            status_code=500,
            detail=f"Failed to generate chart image: {str(e)}"
        )
    finally:
        session.close()
