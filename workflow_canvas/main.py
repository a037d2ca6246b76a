"""
Workflow Canvas API
FastAPI application serving compiled, laid-out workflow graphs

Architecture:
- Core: graph builder, layout engine, summary builder (pure)
- Service Layer: document loading and rendering
- External APIs: User-facing endpoints
"""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError

# Import external API routers
from workflow_canvas.api.routes import (
    health,
    visualize
)

from workflow_canvas.core.config import get_settings
from workflow_canvas.core.logging import setup_logging, get_logger

# Initialize logging
setup_logging()
logger = get_logger(__name__)

# Get settings
settings = get_settings()

# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Workflow graph compiler and layout engine for the workflow editor canvas"
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# CUSTOM EXCEPTION HANDLERS
# ============================================================================

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Custom handler for request validation errors
    Provides clearer error messages for API consumers
    """
    errors = []
    for error in exc.errors():
        field = " -> ".join(str(x) for x in error["loc"])
        message = error["msg"]
        error_type = error["type"]

        errors.append({
            "field": field,
            "message": message,
            "type": error_type
        })

    logger.warning(f"Validation error on {request.url.path}: {errors}")

    return JSONResponse(
        status_code=422,
        content={
            "error": "Validation Error",
            "message": "Request validation failed. Please check the required fields and formats.",
            "details": errors
        }
    )


# ============================================================================
# INCLUDE EXTERNAL API ROUTERS (User-facing)
# ============================================================================

app.include_router(health.router)
app.include_router(visualize.router)


# ============================================================================
# ROOT ENDPOINT
# ============================================================================

@app.get("/", tags=["Health"])
async def root():
    """Root endpoint with API information"""
    return {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running",
        "endpoints": [
            "/health",
            "/ping",
            "/visualize/graph",
            "/visualize/summary"
        ]
    }


# ============================================================================
# MAIN (for running directly)
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "workflow_canvas.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG
    )
