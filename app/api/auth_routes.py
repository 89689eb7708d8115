from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from typing import Dict

from app.services.auth_service import auth_service
from app.schemas import UserCreate, UserResponse, Token, RoleUpdate
from app.core.auth_dependencies import get_current_user, get_admin_user
import logging

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/auth",
    tags=["Authentication"]
)

# Registers a new user account with email and password
@router.post("/signup", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def signup_user(user_data: UserCreate) -> UserResponse:
    try:
        created_user = await auth_service.register_user(user_data)
        return UserResponse(**created_user)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Unexpected error during signup: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An unexpected error occurred during registration"
        )

# Authenticates user credentials and returns an access token
@router.post("/login", response_model=Token, status_code=status.HTTP_200_OK)
async def login_user(form_data: OAuth2PasswordRequestForm = Depends()) -> Token:
    try:
        class LoginData:
            def __init__(self, email: str, password: str):
                self.email = email
                self.password = password

        login_data = LoginData(email=form_data.username, password=form_data.password)
        token_data = await auth_service.login_user(login_data)

        return Token(
            access_token=token_data["access_token"],
            token_type=token_data["token_type"]
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Unexpected error during login: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An unexpected error occurred during login"
        )

# Retrieves the authenticated user's profile information
@router.get("/me", response_model=UserResponse, status_code=status.HTTP_200_OK)
async def get_current_user_info(current_user: dict = Depends(get_current_user)) -> UserResponse:
    return UserResponse(**current_user)

# Generates a new access token for the authenticated user
@router.post("/refresh", response_model=Token, status_code=status.HTTP_200_OK)
async def refresh_token(current_user: dict = Depends(get_current_user)) -> Token:
    try:
        token_data = await auth_service.refresh_user_token(current_user["email"])
        return Token(
            access_token=token_data["access_token"],
            token_type=token_data["token_type"]
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Unexpected error during token refresh: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An unexpected error occurred during token refresh"
        )

# Assigns a workflow role (user, secretary, notary, admin) to an account
@router.patch("/users/{user_id}/role", response_model=UserResponse, status_code=status.HTTP_200_OK)
async def update_user_role(
    user_id: str,
    request: RoleUpdate,
    current_user: Dict = Depends(get_admin_user),
) -> UserResponse:
    updated = await auth_service.set_user_role(user_id, request.role)
    logger.info(f"Admin {current_user['id']} set role of {user_id} to {request.role.value}")
    return UserResponse(**updated)
