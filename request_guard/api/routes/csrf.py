from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from request_guard.core.policies import PolicyName
from request_guard.core.protection import RequestGuard, protect
from request_guard.schemas.csrf import CsrfTokenResponse

router = APIRouter(tags=["CSRF"])


@router.get(
    "/csrf",
    response_model=CsrfTokenResponse,
    dependencies=[Depends(protect(PolicyName.GENERAL_API))],
)
async def issue_csrf_token(request: Request, response: Response) -> CsrfTokenResponse:
    """Issue a CSRF token for the caller's session.

    Creates the session secret cookie on first use, sets the signature cookie
    for this token and returns the token itself. Pages send the token back in
    the CSRF header on every state-changing request.

    Returns:
        CsrfTokenResponse with the token and the header it belongs in.
    """
    guard: RequestGuard = request.app.state.guard
    issued = guard.csrf.issue_token(request, response)
    response.headers["Cache-Control"] = "no-store"
    return CsrfTokenResponse(token=issued.token, header_name=guard.csrf.header_name)
