from __future__ import annotations

import hmac
import logging

import bcrypt
from fastapi import Header, HTTPException, Request, status

from ..core.config import settings
from ..core.logging import log_event
from ..middlewares import principal_ctx_var
from ..services.data_management import Authorizer, DataAction

logger = logging.getLogger(__name__)


class AuthContext:
    def __init__(self, *, subject: str, scheme: str) -> None:
        self.subject = subject
        self.scheme = scheme


def _set_principal(request: Request, principal: str) -> None:
    principal_ctx_var.set(principal)
    request.state.principal = principal


async def require_api_key(
    request: Request,
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
) -> AuthContext:
    """Accept any caller when no API key is configured, else demand a matching ``X-API-Key``."""

    api_key = settings.API_KEY
    if not api_key:
        _set_principal(request, "anonymous")
        return AuthContext(subject="anonymous", scheme="open")

    provided = (x_api_key or "").strip()
    if provided and hmac.compare_digest(api_key, provided):
        _set_principal(request, "api-key")
        return AuthContext(subject="api-key", scheme="api_key")
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid API key" if provided else "Authorization required",
    )


def verify_master_password(candidate: str | None) -> bool:
    """Check a master password against the bcrypt hash, or the plain value when no hash is set."""

    if not candidate:
        return False
    hashed = settings.MASTER_PASSWORD_HASH
    if hashed:
        try:
            return bcrypt.checkpw(candidate.encode("utf-8"), hashed.encode("utf-8"))
        except ValueError:
            logger.error("auth.master_hash_invalid")
            return False
    expected = settings.MASTER_PASSWORD
    return bool(expected) and hmac.compare_digest(expected.encode("utf-8"), candidate.encode("utf-8"))


def master_password_gate(
    x_master_password: str | None = Header(default=None, alias="X-Master-Password"),
) -> Authorizer:
    """Authorizer for data operations driven by the ``X-Master-Password`` header."""

    def authorize(action: DataAction) -> bool:
        granted = verify_master_password(x_master_password)
        log_event(logger, "auth.master_password", action=action, granted=granted)
        return granted

    return authorize


def deny_when_refused(action: DataAction, granted: bool) -> None:
    if not granted:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Master password required to {action} data",
        )


__all__ = [
    "AuthContext",
    "deny_when_refused",
    "master_password_gate",
    "require_api_key",
    "verify_master_password",
]
