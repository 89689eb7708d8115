from app.schemas.user_schemas import UserCreate, UserResponse, Token, TokenData, RoleEnum, RoleUpdate
