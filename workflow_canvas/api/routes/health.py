"""
Health Check API Routes
System health and status endpoints
"""
from fastapi import APIRouter
from workflow_canvas.core.config import get_settings

router = APIRouter(tags=["Health"])

settings = get_settings()


@router.get("/health")
async def health_check():
    """
    Detailed health check endpoint

    Returns service status and component health
    """
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "components": {
            "graph_builder": "ok",
            "layout_engine": "ok",
            "visualization_service": "ok"
        }
    }


@router.get("/ping")
async def ping():
    """
    Simple ping endpoint for load balancers
    """
    return {"status": "ok"}
