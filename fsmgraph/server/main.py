"""
FastAPI server exposing one editable project.

Start with:
    python -m fsmgraph.server.main

Or via uvicorn directly:
    uvicorn fsmgraph.server.main:app --port 3001 --reload
"""
from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ..config import get_settings
from ..logging_setup import configure_logging
from .routes.graph_routes import router

settings = get_settings()

# ---------------------------------------------------------------------------
# FastAPI application
# ---------------------------------------------------------------------------

app = FastAPI(title=f"{settings.app_name} API", version=settings.app_version)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router, prefix="/api")


@app.get("/health")
async def health() -> dict:
    return {"status": "ok", "app": settings.app_name, "version": settings.app_version}


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def run() -> None:
    import uvicorn

    configure_logging(settings.log_level)
    uvicorn.run("fsmgraph.server.main:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
