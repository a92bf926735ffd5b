"""
ModelFlow - FastAPI Application Entry Point.

An async execution engine for flows of language-model agents.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging

from modelflow.config import settings
from modelflow.adapters.dispatch import provider_dispatcher
from modelflow.adapters.registry import adapter_registry
from modelflow.adapters.validation import validate_registry
from modelflow.api.routes import flows, models, websocket
from modelflow.storage.memory import run_storage


# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    report = validate_registry(adapter_registry)
    if not report.valid:
        for error in report.errors:
            logger.error(f"Model registry: {error}")
    logger.info(f"{len(adapter_registry)} models registered")

    yield

    # Shutdown
    logger.info("Shutting down...")
    await provider_dispatcher.aclose()


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    description="""
## Flow Execution API

Run graphs of language-model agents end to end.

### Features
- **Nodes**: literal prompts or calls to a registered model
- **Levels**: nodes run as soon as their dependencies finished, concurrently within a level
- **Adapters**: one request/response adapter per provider (OpenAI, Anthropic, Gemini, ...)
- **Failure isolation**: a failing node is recorded, the rest of the flow keeps running
- **Real-time Updates**: WebSocket support for live execution streaming

### Quick Start
1. List available models: `GET /models`
2. Preview the execution plan: `POST /flows/plan`
3. Run the flow: `POST /flows/run`
4. Check a run: `GET /flows/runs/{run_id}`

### Demo Flow
`POST /flows/demo/run` runs a prompt → solver → reviewer flow on the mock model.
    """,
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)


# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Include routers
app.include_router(flows.router)
app.include_router(models.router)
app.include_router(websocket.router)


# ============================================================
# Root Endpoints
# ============================================================

@app.get("/", tags=["Root"])
async def root():
    """API root - returns basic info and links."""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "description": "An async execution engine for multi-model agent flows",
        "docs": "/docs",
        "redoc": "/redoc",
        "endpoints": {
            "flows": "/flows",
            "models": "/models",
            "metrics": "/flows/metrics",
            "websocket_run": "/ws/run",
        },
        "demo_flow": "/flows/demo/run",
    }


@app.get("/health", tags=["Root"])
async def health():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "models_count": len(adapter_registry),
        "runs_count": len(run_storage),
    }


# ============================================================
# Error Handlers
# ============================================================

@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Global exception handler for unhandled errors."""
    logger.exception(f"Unhandled error: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal Server Error",
            "detail": str(exc) if settings.DEBUG else "An unexpected error occurred",
        },
    )
