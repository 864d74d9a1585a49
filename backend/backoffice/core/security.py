"""
Security Module - Authenticated principal & role checks

Tokens are issued by the identity provider; this service only verifies them
and resolves the principal. Role checks are plain functions so services can
apply them to workflow stages without touching request state.
"""
from typing import Iterable, List, Optional
from jose import JWTError, jwt
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
import logging

from backoffice.core.config import settings
from backoffice.core.database import get_db
from backoffice.core.exceptions import AuthenticationError, ForbiddenError
from backoffice.models import User, UserRole

logger = logging.getLogger(__name__)

# Bearer token scheme
bearer_scheme = HTTPBearer(auto_error=False)

APPROVER_ROLES = (UserRole.ADMIN, UserRole.ACCOUNT_MANAGER, UserRole.HOF)


def _role_value(role) -> str:
    return role.value if isinstance(role, UserRole) else role


def has_role(caller_role, required_roles: Iterable) -> bool:
    """True when ``caller_role`` is one of ``required_roles``. No implicit bypass."""
    return _role_value(caller_role) in {_role_value(r) for r in required_roles}


def decode_access_token(token: str) -> Optional[dict]:
    """Decode and validate a JWT token"""
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None


async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    db: Session = Depends(get_db)
) -> User:
    """
    Dependency to get the current authenticated user from a JWT token.
    Supports both Authorization header and cookies.
    """
    token = credentials.credentials if credentials else None
    if not token:
        token = request.cookies.get("access_token")
    if not token:
        raise AuthenticationError("Not authenticated")

    payload = decode_access_token(token)
    if payload is None:
        raise AuthenticationError("Invalid or expired token", code="INVALID_TOKEN")

    username = payload.get("sub")
    if username is None:
        raise AuthenticationError("Invalid token payload", code="INVALID_TOKEN")

    user = db.query(User).filter(User.username == username).first()
    if user is None:
        raise AuthenticationError("User not found", code="INVALID_TOKEN")
    if not user.is_active:
        raise ForbiddenError("User account is disabled", code="ACCOUNT_DISABLED")

    return user


class RoleChecker:
    """Dependency for checking the caller's role. Admin passes every route check."""

    def __init__(self, allowed_roles: List[UserRole]):
        self.allowed_roles = list(allowed_roles)

    def __call__(self, user: User = Depends(get_current_user)) -> User:
        if user.role == UserRole.ADMIN.value or has_role(user.role, self.allowed_roles):
            return user

        logger.warning(
            f"User {user.username} with role {user.role} attempted to access resource "
            f"requiring roles: {', '.join(_role_value(r) for r in self.allowed_roles)}"
        )
        raise ForbiddenError("You do not have permission to access this resource")
