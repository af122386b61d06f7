"""Protection middleware: CSRF and rate limiting in front of a handler.

Order for a protected request:
1. Unsafe method: CSRF check. A failure rejects at once and consumes no
   rate-limit slot.
2. Resolve the caller's identifier.
3. Consult the rate limiter with the route's policy.
4. Over quota: reject with retry metadata.
5. Otherwise the handler runs.

``RequestGuard.guard`` returns an outcome value instead of raising, so it can
be reused outside FastAPI. ``protect`` adapts it to a FastAPI dependency and
converts rejections into the errors the exception handlers render.

CSRF is enforced on every unsafe method of every protected route. Opting a
route out requires ``csrf_exempt=True`` and is logged when the route is
declared.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Mapping

from fastapi import Request, Response

from request_guard.core.csrf import CsrfTokenService, is_safe_method
from request_guard.core.errors import CsrfValidationError, RateLimitExceededError
from request_guard.core.identity import IdentifierResolver
from request_guard.core.policies import PolicyName, RateLimitPolicy
from request_guard.core.rate_limit import RateLimitDecision, RateLimiter, hash_identifier

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Proceed:
    """The handler may run.

    ``decision`` is None when rate limiting is disabled.
    """

    identifier: str
    decision: RateLimitDecision | None = None


@dataclass(frozen=True)
class RateLimited:
    """The caller exhausted the policy's quota."""

    identifier: str
    policy: PolicyName
    decision: RateLimitDecision


@dataclass(frozen=True)
class CsrfRejected:
    """The request failed the CSRF check. Carries no reason."""


GuardOutcome = Proceed | RateLimited | CsrfRejected


class RequestGuard:
    """Composes CSRF validation, identifier resolution and rate limiting."""

    def __init__(
        self,
        *,
        limiter: RateLimiter,
        csrf: CsrfTokenService,
        resolver: IdentifierResolver,
        policies: Mapping[PolicyName, RateLimitPolicy],
        rate_limit_enabled: bool = True,
        csrf_enabled: bool = True,
        include_headers: bool = True,
    ) -> None:
        missing = [name.value for name in PolicyName if name not in policies]
        if missing:
            raise ValueError(f"policies missing for: {', '.join(missing)}")

        self.limiter = limiter
        self.csrf = csrf
        self.resolver = resolver
        self.policies = policies
        self.rate_limit_enabled = rate_limit_enabled
        self.csrf_enabled = csrf_enabled
        self.include_headers = include_headers

    async def guard(
        self,
        request: Request,
        policy_name: PolicyName,
        *,
        csrf_exempt: bool = False,
    ) -> GuardOutcome:
        """Decide whether ``request`` may reach its handler.

        Args:
            request: Incoming request.
            policy_name: Rate-limit policy of the route class.
            csrf_exempt: Skip the CSRF check for this route.

        Returns:
            Proceed, RateLimited or CsrfRejected.
        """
        if (
            self.csrf_enabled
            and not csrf_exempt
            and not is_safe_method(request.method)
            and not self.csrf.validate(request)
        ):
            return CsrfRejected()

        identifier = self.resolver.resolve(request)
        if not self.rate_limit_enabled:
            return Proceed(identifier=identifier)

        policy = self.policies[policy_name]
        decision = await self.limiter.allow(identifier, policy)
        if decision.allowed:
            return Proceed(identifier=identifier, decision=decision)

        logger.info(
            "rate_limit.exceeded",
            extra={
                "policy": policy.name.value,
                "key_type": identifier.split(":", 1)[0],
                "key_hash": hash_identifier(identifier),
                "limit": decision.limit,
                "window_s": policy.window_seconds,
                "retry_after_s": decision.retry_after_seconds,
            },
        )
        return RateLimited(identifier=identifier, policy=policy.name, decision=decision)


def protect(
    policy: PolicyName | str,
    *,
    csrf_exempt: bool = False,
) -> Callable[[Request, Response], Awaitable[None]]:
    """Build a FastAPI dependency guarding a route with ``policy``.

    Usage:
        @router.post("/auth/login", dependencies=[Depends(protect(PolicyName.LOGIN))])
        async def login(...): ...

    Args:
        policy: Policy of the route class.
        csrf_exempt: Explicitly opt the route out of CSRF validation.

    Returns:
        Dependency callable that raises CsrfValidationError (403) or
        RateLimitExceededError (429) on rejection.

    Raises:
        ValueError: If ``policy`` is not a known policy name.
    """
    policy_name = PolicyName(policy)
    if csrf_exempt:
        logger.info("csrf.exempt_route", extra={"policy": policy_name.value})

    async def guard_dependency(request: Request, response: Response) -> None:
        guard: RequestGuard = request.app.state.guard
        outcome = await guard.guard(request, policy_name, csrf_exempt=csrf_exempt)

        if isinstance(outcome, CsrfRejected):
            raise CsrfValidationError()
        if isinstance(outcome, RateLimited):
            raise RateLimitExceededError(outcome.decision, outcome.policy.value)

        if outcome.decision is not None and guard.include_headers:
            response.headers.update(outcome.decision.headers())

    return guard_dependency
