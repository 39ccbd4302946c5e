"""Write guard: routes that change configuration or start jobs need the token.

Read-only routes stay open. Without a configured token every route is open,
which is the expected setup on a bench machine bound to localhost.
"""

from __future__ import annotations

import hmac
import os

from fastapi import HTTPException, Request, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from srdir.config import WebApiSettings, webapi_settings_from_env

_bearer = HTTPBearer(auto_error=False)


def current_settings(request: Request) -> WebApiSettings:
    """Settings installed by ``srdir-webapi``, or read from the environment."""

    settings = getattr(request.app.state, "webapi_settings", None)
    if settings is None:
        settings = webapi_settings_from_env(os.environ)
    return settings


async def require_write_token(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
) -> None:
    expected = current_settings(request).token
    if expected is None:
        return
    supplied = credentials.credentials if credentials is not None else ""
    if not hmac.compare_digest(supplied.encode("utf-8"), expected.encode("utf-8")):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Se requiere un token válido para modificar datos",
            headers={"WWW-Authenticate": "Bearer"},
        )
