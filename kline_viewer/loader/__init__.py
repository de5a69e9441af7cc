# K-line Viewer - Loader Package
"""
Access to the external market-data backend.
"""

from .client import SeriesLoader, align_indicators, order_points

__all__ = [
    "SeriesLoader",
    "align_indicators",
    "order_points",
]
