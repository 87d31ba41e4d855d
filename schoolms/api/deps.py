"""API Dependencies"""

from typing import Callable, Optional
from uuid import UUID
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from schoolms.database import get_db
from schoolms.core.security import decode_token
from schoolms.models.enums import UserRole
from schoolms.models.user import User
from schoolms.services.user_service import UserService

# Security scheme for bearer token
security = HTTPBearer()

_CREDENTIALS_ERROR = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Could not validate credentials",
    headers={"WWW-Authenticate": "Bearer"},
)


async def get_current_user(
    db: AsyncSession = Depends(get_db),
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> User:
    """
    Resolve the authenticated user from the bearer access token.

    Raises:
        HTTPException: 401 for a bad token, 404 for a vanished user,
            400 for an inactive account
    """
    payload = decode_token(credentials.credentials)
    if not payload or payload.get("type") != "access":
        raise _CREDENTIALS_ERROR

    user_id_str: Optional[str] = payload.get("sub")
    try:
        user_id = UUID(user_id_str)
    except (TypeError, ValueError):
        raise _CREDENTIALS_ERROR

    user = await UserService.get_user_by_id(db, user_id)
    if not user or user.is_deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Inactive user")

    return user


def require_roles(*roles: UserRole) -> Callable:
    """Dependency factory: allow only the given roles"""

    async def _checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Not enough permissions"
            )
        return current_user

    return _checker


require_admin = require_roles(UserRole.ADMIN)
require_finance = require_roles(UserRole.ADMIN, UserRole.ACCOUNTANT)
