"""
FastAPI dependencies shared by the routers.
"""

from fastapi import Request

from ..charts.builder import ChartModelBuilder
from ..config import Settings, get_settings
from ..loader.client import SeriesLoader


def get_app_settings() -> Settings:
    return get_settings()


def get_loader(request: Request) -> SeriesLoader:
    """The application-wide backend client created at startup."""
    return request.app.state.loader


def make_builder(settings: Settings) -> ChartModelBuilder:
    return ChartModelBuilder(settings.ma_windows)
