from __future__ import annotations

from fastapi import APIRouter, Request

from request_guard.schemas.health import HealthResponse, ReadinessResponse

router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthResponse)
def health_check() -> HealthResponse:
    """Liveness probe.

    Returns a static status so load balancers can tell the process is serving.
    """

    return HealthResponse()


@router.get("/health/ready", response_model=ReadinessResponse)
async def readiness_check(request: Request) -> ReadinessResponse:
    """Readiness probe reporting the counter store backend.

    An unreachable shared store yields ``degraded`` rather than an error
    status: protected routes keep working because rate limiting fails open.
    """

    store = request.app.state.guard.limiter.store
    reachable = await store.ping()
    return ReadinessResponse(
        status="ok" if reachable else "degraded",
        store=store.kind.value,
        store_reachable=reachable,
    )
