"""FastAPI boundary adapters for shopauth."""

from shopauth.fastapi.auth import (
    get_auth_service,
    get_current_principal,
    require_admin,
)
from shopauth.fastapi.error_handlers import register_error_handlers

__all__ = [
    "get_auth_service",
    "get_current_principal",
    "require_admin",
    "register_error_handlers",
]
