"""
Health Monitor REST API routes.
"""
from fastapi import APIRouter, Request
from agents.health_monitor.config import AGENT_NAME, AGENT_VERSION
from agents.health_monitor.models.schemas import HealthResponse

router = APIRouter(prefix="/api/v1/health-monitor", tags=["health-monitor"])


@router.get("/health", response_model=HealthResponse)
async def health(request: Request):
    resp = HealthResponse(agent=AGENT_NAME, version=AGENT_VERSION)
    registry = getattr(request.app.state, "registry", None)
    poller = getattr(request.app.state, "poller", None)
    listener = getattr(request.app.state, "listener", None)

    if registry is None:
        resp.status = "starting"
        return resp

    resp.accounts_monitored = len(registry)
    resp.last_cycle_at = poller.last_cycle_at if poller else None
    resp.listener_active = bool(listener and listener.active)
    return resp
