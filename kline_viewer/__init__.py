# K-line Viewer - Main Package
"""
K-line Viewer: historical equity price dashboard.

This package provides:
- Series Loader: async client for the market-data backend
- Moving-Average Engine and Chart Model Builder: dual-pane K-line chart model
- Renderers: ECharts option for the browser, matplotlib image on the server
- Web Dashboard: FastAPI-based instrument list and detail views
"""

__version__ = "1.0.0"
