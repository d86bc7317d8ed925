"""Health check routes."""
from fastapi import APIRouter

from flowgraph import __version__

router = APIRouter()


@router.get("/health")
def health_check() -> dict:
    """
    Health check endpoint.

    Returns:
        Status dict
    """
    return {
        "status": "healthy",
        "service": "flowgraph-engine",
        "version": __version__,
    }
