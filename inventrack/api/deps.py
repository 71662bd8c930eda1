"""Shared API dependencies."""

from functools import lru_cache

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from inventrack.config import settings
from inventrack.database import async_session
from inventrack.models.user import User
from inventrack.services.auth import AuthService
from inventrack.services.issuer import SessionIssuer
from inventrack.services.token_store import TokenStore
from inventrack.services.users import UserStore

bearer_scheme = HTTPBearer()


@lru_cache
def get_auth_service() -> AuthService:
    return AuthService(
        users=UserStore(async_session),
        tokens=TokenStore(async_session),
        issuer=SessionIssuer(settings.token_config()),
        default_role=settings.default_role,
    )


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    service: AuthService = Depends(get_auth_service),
) -> User:
    """Validate the bearer access token and return the current user."""
    user = await service.resolve_access_token(credentials.credentials)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )
    return user
