"""Tests for the HTTP surface: health, readiness, CSRF issuance, metrics, docs."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient
from prometheus_client.parser import text_string_to_metric_families
from pydantic import ValidationError

from conftest import build_test_guard
from request_guard.adapters.counter_store.base import CounterStoreKind
from request_guard.core.app_factory import create_app
from request_guard.core.config import Settings


@pytest.fixture
def client(clock) -> TestClient:
    app = create_app(Settings(), guard=build_test_guard(clock))
    with TestClient(app) as test_client:
        yield test_client


def test_health(client) -> None:
    resp = client.get("/health")

    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_readiness_with_local_store(client) -> None:
    resp = client.get("/health/ready")

    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "store": "local", "store_reachable": True}


def test_readiness_degraded_when_shared_store_unreachable(clock) -> None:
    store = MagicMock()
    store.kind = CounterStoreKind.SHARED
    store.ping = AsyncMock(return_value=False)
    store.aclose = AsyncMock()
    app = create_app(Settings(), guard=build_test_guard(clock, store=store))

    with TestClient(app) as client:
        resp = client.get("/health/ready")

    assert resp.status_code == 200
    assert resp.json() == {"status": "degraded", "store": "shared", "store_reachable": False}
    store.aclose.assert_awaited_once()


class TestCsrfEndpoint:
    def test_issues_token_and_cookies(self, client) -> None:
        resp = client.get("/v1/csrf")

        assert resp.status_code == 200
        body = resp.json()
        assert body["header_name"] == "X-CSRF-Token"
        assert len(body["token"]) == 64
        assert resp.headers["Cache-Control"] == "no-store"
        assert client.cookies.get("csrf_secret")
        assert client.cookies.get("csrf_signature")

    def test_secret_survives_reissue(self, client) -> None:
        client.get("/v1/csrf")
        secret = client.cookies.get("csrf_secret")
        first_signature = client.cookies.get("csrf_signature")

        client.get("/v1/csrf")

        assert client.cookies.get("csrf_secret") == secret
        assert client.cookies.get("csrf_signature") != first_signature

    def test_is_rate_limited_as_general_api(self, client) -> None:
        resp = client.get("/v1/csrf")

        assert resp.headers["X-RateLimit-Limit"] == "100"
        assert resp.headers["X-RateLimit-Remaining"] == "99"


def test_metrics_exposes_guard_counters(client) -> None:
    client.get("/v1/csrf")

    resp = client.get("/metrics")

    assert resp.status_code == 200
    families = list(text_string_to_metric_families(resp.text))
    samples = [sample for family in families for sample in family.samples]
    assert any(
        sample.name == "request_guard_rate_limit_decisions_total"
        and sample.labels == {"policy": "general_api", "outcome": "allowed"}
        and sample.value >= 1
        for sample in samples
    )
    assert any(family.name.startswith("request_guard_csrf_failures") for family in families)


def test_invalid_cookie_setting_fails_at_startup(monkeypatch) -> None:
    monkeypatch.setenv("CSRF_COOKIE_SAMESITE", "bogus")

    with pytest.raises(ValidationError):
        create_app(Settings())


def test_openapi_documents_csrf_header(client) -> None:
    schema = client.get("/openapi.json").json()

    scheme = schema["components"]["securitySchemes"]["CsrfToken"]
    assert scheme == {
        "type": "apiKey",
        "in": "header",
        "name": "X-CSRF-Token",
        "description": scheme["description"],
    }
    assert schema["paths"]["/v1/csrf"]["get"]["security"] == []
    assert {t["name"] for t in schema["tags"]} >= {"CSRF", "Health"}
