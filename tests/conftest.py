"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
Environment variables are set before anything imports the settings module so
the suite always runs against the process-local counter store.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ.pop("STORE_REDIS_URL", None)
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("RATE_LIMIT_ENABLED", "true")
os.environ.setdefault("CSRF_ENABLED", "true")

from typing import Callable

import pytest
from starlette.requests import Request

from request_guard.adapters.counter_store.base import AbstractCounterStore
from request_guard.adapters.counter_store.in_memory import InMemoryCounterStore
from request_guard.core.config import CsrfSettings, IdentitySettings
from request_guard.core.csrf import CsrfTokenService
from request_guard.core.identity import IdentifierResolver
from request_guard.core.policies import DEFAULT_POLICIES
from request_guard.core.protection import RequestGuard
from request_guard.core.rate_limit import RateLimiter


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_request() -> Callable[..., Request]:
    """Factory building bare Starlette requests for unit tests."""

    def _make(
        method: str = "GET",
        *,
        path: str = "/",
        headers: dict[str, str] | None = None,
        cookies: dict[str, str] | None = None,
        client: tuple[str, int] | None = ("198.51.100.7", 50000),
        subject: str | None = None,
    ) -> Request:
        raw_headers = [
            (name.lower().encode("latin-1"), value.encode("latin-1"))
            for name, value in (headers or {}).items()
        ]
        if cookies:
            cookie_header = "; ".join(f"{k}={v}" for k, v in cookies.items())
            raw_headers.append((b"cookie", cookie_header.encode("latin-1")))

        scope = {
            "type": "http",
            "method": method,
            "path": path,
            "raw_path": path.encode(),
            "query_string": b"",
            "headers": raw_headers,
            "client": client,
            "server": ("testserver", 80),
            "scheme": "http",
        }
        request = Request(scope)
        if subject is not None:
            request.state.subject_id = subject
        return request

    return _make


def build_test_guard(
    clock: Callable[[], float],
    *,
    store: AbstractCounterStore | None = None,
    **kwargs,
) -> RequestGuard:
    """Guard with default policies wired to ``clock``."""
    counter_store = store or InMemoryCounterStore(clock=clock)
    return RequestGuard(
        limiter=RateLimiter(counter_store, clock=clock),
        csrf=CsrfTokenService(CsrfSettings()),
        resolver=IdentifierResolver(IdentitySettings()),
        policies=DEFAULT_POLICIES,
        **kwargs,
    )
