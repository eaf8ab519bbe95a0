from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse

from apps.helpdesk.dependencies.auth import role_required
from apps.helpdesk.lifecycle.models import Role
from apps.helpdesk.metrics import MetricsRegistry, PrometheusExporter, metrics_registry

router = APIRouter(prefix="/metrics", tags=["metrics"])


@router.get(
    "",
    response_class=PlainTextResponse,
    summary="Prometheus exposition of lifecycle metrics",
    dependencies=[Depends(role_required(Role.ADMIN))],
)
async def export_metrics(request: Request) -> PlainTextResponse:
    registry: MetricsRegistry = getattr(request.app.state, "metrics_registry", None) or metrics_registry
    return PlainTextResponse(PrometheusExporter(registry).export(), media_type="text/plain; version=0.0.4")
