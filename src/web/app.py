"""
FastAPI application factory for the safety detection stats API.

Routes:
- /api/health -> runtime and host health
- /api/stats, /api/stats/missing, /api/stats/classes -> live session view
- /api/sessions -> finalized session history
- /api/performance -> detection quality and scheduler state
- /api/alerts -> recent alerts, newest first
"""

from __future__ import annotations

from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from runtime.context import RuntimeContext

from .routes import api
from .services.health_service import HealthService


def create_app(ctx: Optional[RuntimeContext] = None) -> FastAPI:
    """Create the FastAPI app and wire routes to the runtime context."""
    app = FastAPI(
        title="Safety Detect",
        version="0.1.0",
        description="Read-only stats for the safety object detection core",
    )

    # CORS for development dashboards
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173", "http://127.0.0.1:5173"],
        allow_credentials=True,
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    app.state.ctx = ctx
    app.state.health_service = HealthService(ctx=ctx) if ctx is not None else None

    app.include_router(api.router, prefix="/api")
    return app
