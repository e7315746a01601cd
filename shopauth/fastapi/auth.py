"""FastAPI dependencies for bearer-token authentication."""

from typing import Annotated

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from shopauth.auth.models import Principal
from shopauth.auth.service import AuthService
from shopauth.core.exceptions import ConfigurationError, ForbiddenError, UnauthorizedError

# auto_error is off so a missing header surfaces as a shopauth 401
bearer_scheme = HTTPBearer(auto_error=False)


def get_auth_service(request: Request) -> AuthService:
    """Get the ``AuthService`` stored on ``app.state.auth_service``.

    Raises:
        ConfigurationError: If the application has no auth service
    """
    service = getattr(request.app.state, "auth_service", None)
    if service is None:
        raise ConfigurationError("app.state.auth_service is not set")
    return service


async def get_current_principal(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    service: Annotated[AuthService, Depends(get_auth_service)],
) -> Principal:
    """Resolve the bearer token to a principal.

    Raises:
        UnauthorizedError: If the header is missing or the token is invalid,
            expired or revoked
    """
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise UnauthorizedError("Missing bearer token")
    return await service.authenticate(credentials.credentials)


async def require_admin(
    principal: Annotated[Principal, Depends(get_current_principal)],
) -> Principal:
    """Like ``get_current_principal`` but only admits the Admin role."""
    if not principal.is_admin:
        raise ForbiddenError("Administrator role required")
    return principal
