"""Named rate-limit policies.

Each route class is throttled by one statically configured policy. The set of
names is closed (``PolicyName``) so routes cannot reference a policy that does
not exist; limits may be overridden at startup, never at request time.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Mapping

from request_guard.core.config import RateLimitSettings
from request_guard.core.errors import ValidationAppError


class PolicyName(str, Enum):
    """Route classes that carry their own quota."""

    LOGIN = "login"
    REGISTER = "register"
    PASSWORD_RESET = "password_reset"
    GENERAL_API = "general_api"
    UPLOAD = "upload"
    EXPORT = "export"
    PROFILE_VIEW = "profile_view"


@dataclass(frozen=True)
class RateLimitPolicy:
    """Quota for one route class.

    Attributes:
        name: Policy identifier.
        max_requests: Requests admitted per window.
        window_seconds: Window length in seconds.
    """

    name: PolicyName
    max_requests: int
    window_seconds: float

    def __post_init__(self) -> None:
        if self.max_requests < 1:
            raise ValueError("max_requests must be >= 1")
        if self.window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")


DEFAULT_POLICIES: Mapping[PolicyName, RateLimitPolicy] = MappingProxyType(
    {
        PolicyName.LOGIN: RateLimitPolicy(PolicyName.LOGIN, 5, 60),
        PolicyName.REGISTER: RateLimitPolicy(PolicyName.REGISTER, 3, 60),
        PolicyName.PASSWORD_RESET: RateLimitPolicy(PolicyName.PASSWORD_RESET, 3, 300),
        PolicyName.GENERAL_API: RateLimitPolicy(PolicyName.GENERAL_API, 100, 60),
        PolicyName.UPLOAD: RateLimitPolicy(PolicyName.UPLOAD, 10, 60),
        PolicyName.EXPORT: RateLimitPolicy(PolicyName.EXPORT, 3, 3600),
        PolicyName.PROFILE_VIEW: RateLimitPolicy(PolicyName.PROFILE_VIEW, 30, 60),
    }
)


def build_policies(
    rate_limit_settings: RateLimitSettings | None = None,
) -> Mapping[PolicyName, RateLimitPolicy]:
    """Resolve the effective policy table from defaults and overrides.

    Args:
        rate_limit_settings: Settings carrying optional per-policy overrides.

    Returns:
        Read-only mapping covering every ``PolicyName``.

    Raises:
        ValidationAppError: If an override names an unknown policy or carries
            invalid limits.
    """

    policies = dict(DEFAULT_POLICIES)
    overrides = rate_limit_settings.policy_overrides if rate_limit_settings else {}

    for raw_name, override in overrides.items():
        try:
            name = PolicyName(raw_name.lower())
        except ValueError as exc:
            raise ValidationAppError(
                code="unknown_rate_limit_policy",
                message=f"Unknown rate limit policy: {raw_name!r}",
                details={"hint": f"Valid names: {', '.join(p.value for p in PolicyName)}"},
            ) from exc
        try:
            policies[name] = RateLimitPolicy(
                name=name,
                max_requests=override.max_requests,
                window_seconds=override.window_seconds,
            )
        except ValueError as exc:
            raise ValidationAppError(
                code="invalid_rate_limit_policy",
                message=f"Invalid rate limit policy {name.value!r}: {exc}",
                details={"policy": name.value},
            ) from exc

    return MappingProxyType(policies)
