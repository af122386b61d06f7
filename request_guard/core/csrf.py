"""Double-submit CSRF protection.

The server keeps one long-lived secret per browser session in an HttpOnly
cookie. Each issued token is bound to that secret with HMAC-SHA256: the token
goes to the page (and comes back in a request header) while its signature is
stored in a second, script-readable cookie. Only a same-origin page can put
the matching pair back together, and the server needs no per-token state.

Tokens are not single-use; any token signed with the current secret stays
valid for as long as the secret does.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
from dataclasses import dataclass

from starlette.requests import Request
from starlette.responses import Response

from request_guard.core.config import CsrfSettings
from request_guard.core.metrics import record_csrf_failure

logger = logging.getLogger(__name__)

SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})

# 32 random bytes, hex encoded
_RANDOM_BYTES = 32


def is_safe_method(method: str) -> bool:
    """Whether ``method`` is read-only and therefore exempt from CSRF."""
    return method.upper() in SAFE_METHODS


def sign_token(token: str, secret: str) -> str:
    """Return the hex HMAC-SHA256 of ``token`` keyed by ``secret``."""
    return hmac.new(secret.encode(), token.encode(), hashlib.sha256).hexdigest()


@dataclass(frozen=True)
class CsrfToken:
    """A token for the page and the signature that proves it."""

    token: str
    signature: str


class CsrfSecretIssuer:
    """Reads and lazily creates the per-session secret cookie."""

    def __init__(self, csrf_settings: CsrfSettings) -> None:
        self._settings = csrf_settings

    def read(self, request: Request) -> str | None:
        """Return the session's secret, or None if it has none yet."""
        return request.cookies.get(self._settings.secret_cookie_name) or None

    def get_or_create(self, request: Request, response: Response) -> str:
        """Return the existing secret or set a new one on ``response``.

        An existing secret is never rotated: doing so would invalidate every
        token held by the session's open tabs.

        Args:
            request: Incoming request carrying the session cookies.
            response: Response on which a new secret cookie is set.

        Returns:
            The session secret.
        """
        existing = self.read(request)
        if existing:
            return existing

        secret = secrets.token_hex(_RANDOM_BYTES)
        response.set_cookie(
            key=self._settings.secret_cookie_name,
            value=secret,
            max_age=self._settings.secret_max_age_seconds,
            path="/",
            secure=self._settings.cookie_secure,
            httponly=True,
            samesite=self._settings.cookie_samesite,
        )
        logger.info("csrf.secret_created")
        return secret


class CsrfTokenService:
    """Issues and verifies HMAC-bound double-submit tokens."""

    def __init__(
        self,
        csrf_settings: CsrfSettings | None = None,
        secret_issuer: CsrfSecretIssuer | None = None,
    ) -> None:
        self._settings = csrf_settings or CsrfSettings()
        self._secrets = secret_issuer or CsrfSecretIssuer(self._settings)

    @property
    def header_name(self) -> str:
        return self._settings.header_name

    def issue_token(self, request: Request, response: Response) -> CsrfToken:
        """Create a token for the session and set its signature cookie.

        Args:
            request: Incoming request carrying the session cookies.
            response: Response that receives the secret (if new) and the
                signature cookie.

        Returns:
            CsrfToken whose ``token`` must be echoed back in the CSRF header.
        """
        secret = self._secrets.get_or_create(request, response)
        token = secrets.token_hex(_RANDOM_BYTES)
        issued = CsrfToken(token=token, signature=sign_token(token, secret))

        response.set_cookie(
            key=self._settings.signature_cookie_name,
            value=issued.signature,
            max_age=self._settings.signature_max_age_seconds,
            path="/",
            secure=self._settings.cookie_secure,
            httponly=False,
            samesite=self._settings.cookie_samesite,
        )
        return issued

    def _failure_reason(self, request: Request) -> str | None:
        secret = self._secrets.read(request)
        if not secret:
            return "missing_secret"
        token = request.headers.get(self._settings.header_name)
        if not token:
            return "missing_token"
        presented = request.cookies.get(self._settings.signature_cookie_name)
        if not presented:
            return "missing_signature"

        expected = sign_token(token, secret)
        if not hmac.compare_digest(expected.encode(), presented.encode()):
            return "signature_mismatch"
        return None

    def validate(self, request: Request) -> bool:
        """Check a request's proof of same-origin intent.

        Safe methods always pass. For any other method the echoed token, the
        signature cookie and the session secret must all be present and the
        recomputed signature must match in constant time. Every failure mode
        yields the same ``False``; the reason only reaches the logs.
        """
        if is_safe_method(request.method):
            return True

        reason = self._failure_reason(request)
        if reason is None:
            return True

        logger.warning(
            "csrf.validation_failed",
            extra={
                "reason": reason,
                "method": request.method,
                "request_path": request.url.path,
            },
        )
        record_csrf_failure(reason)
        return False
