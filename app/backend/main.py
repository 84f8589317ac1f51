"""
FastAPI application for invoice data extraction.

Provides endpoints for:
- Selecting invoice PDFs for a batch
- Running extraction with per-file status tracking
- Reading results and downloading them as CSV
"""

import logging

from contextlib import asynccontextmanager

from fastapi import FastAPI, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Handle both package imports (when running as module) and standalone imports (uvicorn main:app)
try:
    from .config import ConfigurationError, get_settings
    from .models import HealthResponse
    from .routers import batches
    from .services.ai import AIServiceError, get_ai_service
    from .services.pdf_service import DecodeError, get_pdf_service
except ImportError:
    import sys
    from pathlib import Path
    # Add parent directory to path for standalone imports
    backend_dir = Path(__file__).parent
    if str(backend_dir) not in sys.path:
        sys.path.insert(0, str(backend_dir))
    from config import ConfigurationError, get_settings
    from models import HealthResponse
    from routers import batches
    from services.ai import AIServiceError, get_ai_service
    from services.pdf_service import DecodeError, get_pdf_service

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    logger.info("Starting Invoice Extraction Service...")
    # Settings are built once here; a missing OPENAI_API_KEY stops startup
    try:
        settings = get_settings()
    except ConfigurationError as e:
        logger.critical("Cannot start: %s", e)
        raise
    if settings.debug:
        logging.getLogger().setLevel(logging.DEBUG)
    get_pdf_service()
    get_ai_service()
    logger.info("Services initialized successfully (model=%s)", settings.openai_model)
    yield
    logger.info("Shutting down Invoice Extraction Service...")


# Create FastAPI application
app = FastAPI(
    title="Invoice Extraction API",
    description="Extract invoice fields from PDF uploads using AI",
    version="1.0.0",
    lifespan=lifespan,
)

# Configure CORS for frontend development
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",  # React production (Docker)
        "http://127.0.0.1:3000",
        "http://localhost:5173",  # Vite development server
        "http://127.0.0.1:5173",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition"],
)


# =============================================================================
# Health Endpoints
# =============================================================================


@app.get("/", response_model=HealthResponse)
async def root() -> HealthResponse:
    """Root endpoint - health check."""
    return HealthResponse(
        status="healthy",
        message="Invoice Extraction API is running",
    )


@app.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(status="healthy", message="Service is healthy")


# =============================================================================
# Include Routers
# =============================================================================

app.include_router(batches.router)


# =============================================================================
# Exception Handlers
# =============================================================================


@app.exception_handler(DecodeError)
async def decode_error_handler(request, exc: DecodeError):
    """Handle PDF decoding errors."""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": str(exc)},
    )


@app.exception_handler(AIServiceError)
async def ai_service_error_handler(request, exc: AIServiceError):
    """Handle AI service errors."""
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": str(exc)},
    )
