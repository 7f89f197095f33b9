from __future__ import annotations

from typing import Dict, List

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from models.safety import SafetyObject
from runtime.context import RuntimeContext

from ..api_models import (
    AlertsResponse,
    ClassStatsResponse,
    HealthResponse,
    MissingItemsResponse,
    PerformanceResponse,
    SessionsResponse,
    StatsResponse,
)
from ..services.health_service import HealthService

router = APIRouter()


def get_ctx(request: Request) -> RuntimeContext:
    ctx = getattr(request.app.state, "ctx", None)
    if ctx is None:
        raise HTTPException(status_code=503, detail="Detection runtime not ready")
    return ctx


def _items(objects: List[SafetyObject]) -> List[Dict[str, object]]:
    return [obj.to_dict() for obj in objects]


@router.get("/health", response_model=HealthResponse)
def health(request: Request, ctx: RuntimeContext = Depends(get_ctx)):
    service = getattr(request.app.state, "health_service", None) or HealthService(ctx=ctx)
    return service.get_health_summary()


@router.get("/stats", response_model=StatsResponse)
def stats(ctx: RuntimeContext = Depends(get_ctx)):
    """
    Live session view:
    - latest batch statistics
    - safety_percentage: floor(seen classes * 100 / all classes)
    - overall_accuracy: long-run percent of results at or above the success bar
    """
    orchestrator = ctx.orchestrator
    current = orchestrator.current_stats().to_dict()
    current.update(
        safety_percentage=orchestrator.safety_percentage(),
        overall_accuracy=ctx.aggregator.overall_accuracy(),
        detected_items=[obj.name for obj in ctx.aggregator.detected_items()],
        session_active=orchestrator.session_active,
        is_mock=orchestrator.is_mock,
    )
    return current


@router.get("/stats/missing", response_model=MissingItemsResponse)
def stats_missing(ctx: RuntimeContext = Depends(get_ctx)):
    return {
        "missing": _items(ctx.aggregator.missing_items()),
        "critical_missing": _items(ctx.orchestrator.missing_critical_items()),
    }


@router.get("/stats/classes", response_model=ClassStatsResponse)
def stats_classes(ctx: RuntimeContext = Depends(get_ctx)):
    return {"classes": {obj.name: s.to_dict() for obj, s in ctx.aggregator.class_stats().items()}}


@router.get("/sessions", response_model=SessionsResponse)
def sessions(limit: int = Query(10, ge=1, le=50), ctx: RuntimeContext = Depends(get_ctx)):
    return {"sessions": [s.to_dict() for s in ctx.aggregator.history()[:limit]]}


@router.get("/performance", response_model=PerformanceResponse)
def performance(ctx: RuntimeContext = Depends(get_ctx)):
    metrics = ctx.orchestrator.performance_metrics().to_dict()
    metrics["scheduler"] = ctx.orchestrator.scheduler_snapshot().to_dict()
    return metrics


@router.get("/alerts", response_model=AlertsResponse)
def alerts(ctx: RuntimeContext = Depends(get_ctx)):
    return {"alerts": [a.to_dict() for a in ctx.orchestrator.alerts()]}
