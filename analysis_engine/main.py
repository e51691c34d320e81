from fastapi import FastAPI

from analysis_engine.api.analysis_routes import router as analysis_router
from analysis_engine.api.tool_routes import router as tool_router
from analysis_engine.core.logging import setup_logging

__version__ = "0.1.0"

setup_logging()

tags_metadata = [
    {
        "name": "tools",
        "description": "Registered analysis tools: availability, configuration and validation.",
    },
    {
        "name": "analysis",
        "description": "Run tools in batches, merge their findings, and compare two runs.",
    },
    {
        "name": "health",
        "description": "Liveness probe for container orchestration.",
    },
]

app = FastAPI(
    title="Static Analysis Orchestrator",
    version=__version__,
    openapi_tags=tags_metadata,
)

app.include_router(tool_router)
app.include_router(analysis_router)


@app.get("/health", tags=["health"], summary="Health check")
def health() -> dict:
    return {"status": "healthy", "version": __version__}
