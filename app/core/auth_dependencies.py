from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from app.core.security import decode_token
from app.services.auth_service import auth_service
from typing import Callable, Dict
import logging

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")

# Extracts and validates JWT token to retrieve current authenticated user
async def get_current_user(token: str = Depends(oauth2_scheme)) -> Dict:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    payload = decode_token(token)
    if payload is None or payload.get("type", "access") != "access":
        logger.warning("Token validation failed")
        raise credentials_exception

    email = payload.get("sub")
    if email is None:
        logger.debug("No 'sub' field in token payload.")
        raise credentials_exception

    user = await auth_service.get_user_by_email(email)
    if user is None:
        raise credentials_exception

    return user

# Validates that the current user is active and authorized
async def get_current_active_user(current_user: Dict = Depends(get_current_user)) -> Dict:
    return current_user

# Builds a dependency that only lets the listed workflow roles through
def require_roles(*roles: str) -> Callable:
    allowed = {r.value if hasattr(r, "value") else r for r in roles}

    async def _checker(current_user: Dict = Depends(get_current_user)) -> Dict:
        if current_user.get("role") not in allowed:
            logger.warning(f"User {current_user.get('id')} with role {current_user.get('role')} denied; requires {sorted(allowed)}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You do not have permission to perform this action"
            )
        return current_user

    return _checker

# Validates that the current user has admin privileges
get_admin_user = require_roles("admin")
