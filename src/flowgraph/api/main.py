"""FastAPI application."""
from fastapi import FastAPI

from flowgraph import __version__
from flowgraph.api.routes import executions, health
from flowgraph.observability import setup_logging

# Setup logging
setup_logging()

# Create FastAPI app
app = FastAPI(
    title="Flowgraph Engine",
    description="Async workflow execution engine",
    version=__version__,
)

# Include routers
app.include_router(health.router, tags=["health"])
app.include_router(executions.router, tags=["executions"])


@app.get("/")
def root() -> dict:
    """Root endpoint."""
    return {
        "service": "flowgraph-engine",
        "version": __version__,
        "docs": "/docs",
    }
