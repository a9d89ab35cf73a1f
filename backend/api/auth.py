"""
Authentication API Endpoints for the GBV case tracker
Handles login and profile re-fetch
"""
from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from middleware.rbac import get_current_user
from models import User
from schemas import LoginRequest, TokenResponse, UserResponse
from services.auth_service import ACCESS_TOKEN_EXPIRE_MINUTES, authenticate

router = APIRouter(
    prefix="/auth",
    tags=["Authentication"]
)


@router.post("/login", response_model=TokenResponse)
async def login(
    credentials: LoginRequest,
    request: Request,
    db: AsyncSession = Depends(get_db)
):
    """
    Exchange username and password for a bearer token

    Five consecutive failures lock the account for thirty minutes.
    """
    user, token = await authenticate(db, credentials.username, credentials.password, request)
    return TokenResponse(
        access_token=token,
        expires_in=ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        user=UserResponse.model_validate(user),
    )


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: User = Depends(get_current_user)):
    """Authoritative profile of the token's subject"""
    return current_user
