"""
External API Routes
Export all routers for main.py to include
"""
from workflow_canvas.api.routes import (
    health,
    visualize
)

__all__ = [
    "health",
    "visualize"
]
