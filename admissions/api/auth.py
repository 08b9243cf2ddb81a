from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from admissions.config import settings
from admissions.database import get_db
from admissions.middleware.authentication import get_current_user
from admissions.models.users import User
from admissions.schemas.users import LoginRequest, Token, UserInDB
from admissions.services.auth import authenticate_user, create_access_token

router = APIRouter()

@router.post("/auth/login", response_model=Token)
async def login_for_access_token(
    form_data: LoginRequest,
    db: AsyncSession = Depends(get_db)
):
    """
    Authenticate a back-office user and return an access token.
    """
    user = await authenticate_user(form_data.username, form_data.password, db)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    access_token_expires = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    access_token = create_access_token(
        data={"sub": str(user.id), "role": user.role.name},
        expires_delta=access_token_expires
    )

    return {
        "access_token": access_token,
        "token_type": "bearer",
        "user_id": user.id,
        "role": user.role.name
    }

@router.get("/auth/me", response_model=UserInDB)
async def get_current_user_info(
    current_user: User = Depends(get_current_user)
):
    """
    Get information about the currently authenticated user.
    """
    return current_user
