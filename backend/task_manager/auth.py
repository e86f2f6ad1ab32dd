"""Authentication and role-authorization FastAPI dependencies.

`authenticate` verifies the bearer token and records the verified claims
on the request as an `AuthContext`. `authorize_roles(...)` builds a
dependency that reads that context and checks the caller's role. Routes
list `authenticate` first; `authorize_roles` never verifies tokens
itself, so reaching it without a context is a wiring bug and answers 500
rather than 401.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import HTTPException, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .domain import Claims, Role
from .errors import InvalidTokenError, TokenExpiredError

bearer_scheme = HTTPBearer(auto_error=False)
logger = logging.getLogger("task_manager.auth")

BEARER_CHALLENGE = {"WWW-Authenticate": "Bearer"}


@dataclass(frozen=True)
class AuthContext:
    """Request-scoped authentication state; `claims` is None until verified."""
    claims: Optional[Claims] = None


def get_auth_context(request: Request) -> AuthContext:
    return getattr(request.state, "auth", None) or AuthContext()


def authenticate(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
) -> Claims:
    """Verify `Authorization: Bearer <token>` and return its claims.

    Missing, malformed, invalid and expired tokens all raise
    HTTPException(401); the expired case says so explicitly so clients
    know to log in again.
    """
    if credentials is None or not credentials.credentials:
        logger.info("missing or malformed Authorization header path=%s", request.url.path)
        raise HTTPException(status_code=401, detail="Authorization token required", headers=BEARER_CHALLENGE)

    token_service = request.app.state.container.token_service
    try:
        claims = token_service.verify_token(credentials.credentials)
    except TokenExpiredError as exc:
        logger.info("expired token path=%s", request.url.path)
        raise HTTPException(status_code=401, detail=exc.message, headers=BEARER_CHALLENGE)
    except InvalidTokenError as exc:
        logger.info("token rejected reason=%s path=%s", exc.reason, request.url.path)
        raise HTTPException(status_code=401, detail=exc.message, headers=BEARER_CHALLENGE)

    request.state.auth = AuthContext(claims=claims)
    return claims


def authorize_roles(*roles: Role):
    """Return a dependency admitting only callers whose role is in `roles`."""
    allowed = frozenset(Role(r) for r in roles)
    required = " or ".join(Role(r).value for r in roles)

    def dependency(request: Request) -> Claims:
        match get_auth_context(request):
            case AuthContext(claims=Claims(role=role) as claims) if role in allowed:
                return claims
            case AuthContext(claims=Claims(user_id=user_id, username=username, role=role)):
                logger.warning(
                    "user %r (id=%s, role=%s) denied access to %s; requires %s",
                    username, user_id, role.value, request.url.path, required,
                )
                raise HTTPException(status_code=403, detail=f"Access forbidden: {required} role required")
            case _:
                logger.error("authentication context missing for %s; is authenticate applied first?", request.url.path)
                raise HTTPException(status_code=500, detail="Authentication context missing or invalid")

    return dependency


require_admin = authorize_roles(Role.ADMIN)
