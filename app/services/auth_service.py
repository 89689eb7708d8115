from fastapi import HTTPException, status
from beanie import PydanticObjectId
from bson.errors import InvalidId
from app.database.models import User
from app.schemas import UserCreate, RoleEnum
from app.core import hash_password, verify_password, create_access_token, is_valid_password
from app.core.config import settings
from typing import Dict, Optional
from datetime import datetime
import logging

logger = logging.getLogger(__name__)


def _admin_emails() -> set:
    return {e.strip().lower() for e in (settings.ADMIN_EMAILS or "").split(",") if e.strip()}


def _user_dict(user: User) -> Dict:
    role = user.role.value if isinstance(user.role, RoleEnum) else user.role
    return {
        "id": str(user.id),
        "email": user.email,
        "full_name": user.full_name,
        "role": role,
    }


class AuthService:
    # Register a new user with email and password validation
    @staticmethod
    async def register_user(user_data: UserCreate) -> Dict:
        existing_user = await User.find_one(User.email == user_data.email)

        if existing_user:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Email already registered"
            )

        if not is_valid_password(user_data.password):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Password must be at least 8 characters long"
            )

        try:
            hashed_password = hash_password(user_data.password)
        except ValueError:
            logger.warning("Password hashing failed")
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid password format"
            )

        role = RoleEnum.admin if user_data.email.lower() in _admin_emails() else RoleEnum.user
        new_user = User(
            email=user_data.email,
            full_name=user_data.full_name,
            hashed_password=hashed_password,
            role=role,
            created_at=datetime.utcnow()
        )

        try:
            await new_user.insert()
            logger.debug("User saved with ID: %s", new_user.id)
        except Exception as e:
            logger.error("User save failed: %s", e)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="User registration failed"
            )

        return {**_user_dict(new_user), "message": "User registered successfully"}

    # Authenticate user and generate access token
    @staticmethod
    async def login_user(form_data) -> Dict:
        logger.debug("Login attempt for email: %s", form_data.email)

        user = await User.find_one(User.email == form_data.email)

        if not user or not verify_password(form_data.password, user.hashed_password):
            logger.warning("Invalid credentials for email: %s", form_data.email)
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid email or password"
            )

        if not user.is_active:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Account is disabled"
            )

        profile = _user_dict(user)
        try:
            access_token = create_access_token(data={"sub": user.email, "role": profile["role"]})
            logger.debug("Created JWT access token for sub: %s", user.email)
        except ValueError as e:
            logger.error("Token creation failed: %s", e)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Could not create access token"
            )
        return {
            "access_token": access_token,
            "token_type": "bearer",
            "user": profile
        }

    # Retrieve user information by email address
    @staticmethod
    async def get_user_by_email(email: str) -> Optional[Dict]:
        user = await User.find_one(User.email == email)
        if not user or not user.is_active:
            return None
        return _user_dict(user)

    # Generate a new access token for existing user
    @staticmethod
    async def refresh_user_token(email: str) -> Dict:
        user = await User.find_one(User.email == email)
        if not user:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="User not found"
            )

        try:
            access_token = create_access_token(data={"sub": email, "role": _user_dict(user)["role"]})
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Could not create access token"
            )

        return {
            "access_token": access_token,
            "token_type": "bearer"
        }

    # Assign a workflow role to an account (admin only)
    @staticmethod
    async def set_user_role(user_id: str, role: RoleEnum) -> Dict:
        if role == RoleEnum.system:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="The system role cannot be assigned to accounts"
            )
        try:
            user = await User.get(PydanticObjectId(user_id))
        except (InvalidId, TypeError):
            user = None
        if not user:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="User not found"
            )

        user.role = role
        user.updated_at = datetime.utcnow()
        await user.save()
        logger.info(f"Role of user {user_id} set to {role.value}")
        return {**_user_dict(user), "message": "Role updated successfully"}

auth_service = AuthService()
