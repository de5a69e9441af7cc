# K-line Viewer - API Package
"""
FastAPI route handlers for the web API.

Routers:
- instruments: Instrument list and batch refresh endpoints
- views: Detail-view chart, table and image endpoints
"""

from . import instruments
from . import views

__all__ = [
    "instruments",
    "views",
]
