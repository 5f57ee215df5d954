"""Webhook token verification and dashboard access policy."""
from __future__ import annotations

import hmac

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from app.config import Settings, get_settings

DASHBOARD_REALM = "Subscriber Dashboard"
DASHBOARD_SCHEME = HTTPBasic(realm=DASHBOARD_REALM, auto_error=False)


def _compare(provided: str, expected: str) -> bool:
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


def verify_verification_token(provided: str | None, expected: str) -> bool:
    """Constant-time check of a Ko-fi verification token.

    An empty configured secret rejects every token.
    """
    if not provided or not expected:
        return False
    return _compare(provided, expected)


def _challenge() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Authentication required",
        headers={"WWW-Authenticate": f'Basic realm="{DASHBOARD_REALM}"'},
    )


async def require_dashboard_access(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> str | None:
    """Apply the configured dashboard policy; returns the authenticated user, if any.

    The Authorization header is only parsed under the ``basic`` policy, so a
    stale or malformed header never locks out an open dashboard.
    """
    if settings.dashboard_auth == "none":
        return None
    try:
        creds: HTTPBasicCredentials | None = await DASHBOARD_SCHEME(request)
    except HTTPException:
        raise _challenge() from None
    if creds is None:
        raise _challenge()

    user_ok = _compare(creds.username, settings.dashboard_username)
    password_ok = _compare(creds.password, settings.dashboard_password.get_secret_value())
    if not (user_ok and password_ok):
        raise _challenge()
    return creds.username
