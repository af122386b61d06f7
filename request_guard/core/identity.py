"""Rate-limit partition keys.

An authenticated caller is limited per account (``user:<id>``), which
survives IP changes and does not penalize users sharing a NAT. Anonymous
callers are limited per client address (``ip:<address>``). When no address
can be determined all such callers share the ``ip:unknown`` bucket.
"""

from __future__ import annotations

from starlette.requests import Request

from request_guard.core.config import IdentitySettings

UNKNOWN_IDENTIFIER = "ip:unknown"


class IdentifierResolver:
    """Derive a stable partition key from the request context."""

    def __init__(self, identity_settings: IdentitySettings | None = None) -> None:
        cfg = identity_settings or IdentitySettings()
        self._trust_proxy_headers = cfg.trust_proxy_headers
        self._subject_attr = cfg.subject_state_attr

    def _subject(self, request: Request) -> str | None:
        subject = getattr(request.state, self._subject_attr, None)
        if subject is None:
            return None
        subject = str(subject).strip()
        return subject or None

    def client_address(self, request: Request) -> str | None:
        """Best available client network address, or None."""
        if self._trust_proxy_headers:
            forwarded_for = request.headers.get("x-forwarded-for")
            if forwarded_for:
                first = forwarded_for.split(",")[0].strip()
                if first:
                    return first
            real_ip = (request.headers.get("x-real-ip") or "").strip()
            if real_ip:
                return real_ip

        if request.client and request.client.host:
            return request.client.host
        return None

    def resolve(self, request: Request) -> str:
        """Return ``user:<subject>`` or ``ip:<address>``; never raises."""
        subject = self._subject(request)
        if subject:
            return f"user:{subject}"

        address = self.client_address(request)
        if address:
            return f"ip:{address}"
        return UNKNOWN_IDENTIFIER
