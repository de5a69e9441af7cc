"""
K-line Viewer - Main FastAPI Application

Instrument list and K-line detail dashboard in front of a market-data backend.
"""

from fastapi import FastAPI, Request, HTTPException
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional
from urllib.parse import urlencode
import logging

from .config import get_settings
from .errors import MalformedInput
from .loader.client import SeriesLoader
from .validation import validate_detail_request
from .api import instruments, views

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Get project root directory
PROJECT_ROOT = Path(__file__).parent.parent


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup
    logger.info(f"Starting K-line Viewer (backend: {settings.backend_url})...")
    app.state.loader = SeriesLoader(
        settings.backend_url,
        request_timeout=settings.request_timeout,
        refresh_concurrency=settings.refresh_concurrency,
    )

    yield

    # Shutdown
    logger.info("Shutting down K-line Viewer...")
    await app.state.loader.close()


# Create FastAPI application
app = FastAPI(
    title="K-line Viewer",
    description="Historical equity price dashboard with K-line charts",
    version="1.0.0",
    lifespan=lifespan
)

# Add CORS middleware for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:8000", "http://127.0.0.1:8000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Mount static files
static_path = PROJECT_ROOT / "static"
if static_path.exists():
    app.mount("/static", StaticFiles(directory=str(static_path)), name="static")

# Set up templates
templates_path = PROJECT_ROOT / "templates"
templates = Jinja2Templates(directory=str(templates_path))


# ===========================================
# Include API Routers
# ===========================================

app.include_router(instruments.router, prefix="/api/instruments", tags=["Instruments"])
app.include_router(views.router, prefix="/api/view", tags=["Detail View"])


# ===========================================
# HTML Page Routes
# ===========================================

@app.get("/", response_class=HTMLResponse)
async def instrument_list_page(request: Request, error: Optional[str] = None):
    """List view of tradable instruments."""
    return templates.TemplateResponse(
        request,
        "index.html",
        {"page": "list", "error": error,
         "default_range_days": settings.default_range_days}
    )


@app.get("/stock-detail", response_class=HTMLResponse)
async def stock_detail_page(request: Request,
                            tsCode: Optional[str] = None,
                            startDate: Optional[str] = None,
                            endDate: Optional[str] = None):
    """Detail view; an invalid request goes back to the list view."""
    try:
        detail = validate_detail_request(tsCode, startDate, endDate,
                                         default_days=settings.default_range_days)
    except MalformedInput as e:
        logger.warning(f"Rejected detail request: {e}")
        return RedirectResponse(f"/?{urlencode({'error': e.message})}", status_code=303)

    return templates.TemplateResponse(
        request,
        "stock_detail.html",
        {
            "page": "detail",
            "ts_code": detail.ts_code,
            "start_date": detail.date_range.start_date.isoformat(),
            "end_date": detail.date_range.end_date.isoformat(),
        }
    )


# ===========================================
# Error Handlers
# ===========================================

@app.exception_handler(404)
async def not_found_handler(request: Request, exc: HTTPException):
    """Handle 404 errors."""
    if request.url.path.startswith("/api/"):
        return JSONResponse(
            status_code=404,
            content={"success": False, "message": getattr(exc, "detail", None) or "Resource not found"}
        )
    return RedirectResponse("/", status_code=303)


@app.exception_handler(500)
async def server_error_handler(request: Request, exc: Exception):
    """Handle 500 errors."""
    logger.error(f"Server error: {exc}")
    return JSONResponse(
        status_code=500,
        content={"success": False, "message": "Internal server error"}
    )


# ===========================================
# Health Check
# ===========================================

@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "backend": settings.backend_url,
        "ma_windows": list(settings.ma_windows),
        "ma_source": settings.ma_source,
    }
