import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from hod_appointments.api.deps import get_current_user
from hod_appointments.api.schemas.auth import LoginRequest, RegisterRequest, TokenResponse
from hod_appointments.core.db import get_session
from hod_appointments.models.user import User, UserCreate, UserPublic
from hod_appointments.services.auth_service import login_user, register_user, user_to_public

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register(
    body: RegisterRequest,
    session: AsyncSession = Depends(get_session),
) -> TokenResponse:
    result = await register_user(
        session,
        UserCreate(
            name=body.name,
            email=body.email,
            password=body.password,
            student_id=body.student_id,
        ),
    )
    if not result:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="An account with this email already exists",
        )
    user, access, expires_in = result
    logger.info("Registered user %s with role %s", user.id, user.role)
    return TokenResponse(access_token=access, expires_in=expires_in)


@router.post("/login", response_model=TokenResponse)
async def login(
    body: LoginRequest,
    session: AsyncSession = Depends(get_session),
) -> TokenResponse:
    result = await login_user(session, body.email, body.password)
    if not result:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )
    _, access, expires_in = result
    return TokenResponse(access_token=access, expires_in=expires_in)


@router.get("/me", response_model=UserPublic)
async def me(current_user: User = Depends(get_current_user)) -> UserPublic:
    return user_to_public(current_user)
