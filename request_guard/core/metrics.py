"""Prometheus counters for guard decisions."""

from __future__ import annotations

from fastapi import FastAPI
from prometheus_client import CONTENT_TYPE_LATEST, Counter, generate_latest
from starlette.responses import Response

RATE_LIMIT_DECISIONS = Counter(
    "request_guard_rate_limit_decisions_total",
    "Rate limit decisions by policy and outcome",
    labelnames=("policy", "outcome"),
)
CSRF_FAILURES = Counter(
    "request_guard_csrf_failures_total",
    "Requests rejected by the CSRF check",
    labelnames=("reason",),
)


def record_rate_limit_decision(policy: str, outcome: str) -> None:
    """Count one decision; outcome is allowed, rejected or fail_open."""
    RATE_LIMIT_DECISIONS.labels(policy=policy, outcome=outcome).inc()


def record_csrf_failure(reason: str) -> None:
    CSRF_FAILURES.labels(reason=reason).inc()


def setup_metrics_endpoint(app: FastAPI, path: str = "/metrics") -> None:
    """Expose the default registry in Prometheus text format."""

    @app.get(path, include_in_schema=False)
    async def prometheus_metrics() -> Response:  # pragma: no cover - trivial
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
