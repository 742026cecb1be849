"""Account routes: registration and "who am I"."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from allerscan.database import get_db_session
from allerscan.dependencies import get_current_user
from allerscan.models.user import User
from allerscan.schemas.common import ErrorResponse
from allerscan.schemas.user import UserCreate, UserResponse
from allerscan.services.user_service import user_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["Users"])


@router.post(
    "",
    status_code=201,
    response_model=UserResponse,
    responses={
        409: {"description": "Email already registered", "model": ErrorResponse},
    },
    summary="Register an account",
)
async def create_user(
    body: UserCreate,
    db: AsyncSession = Depends(get_db_session),
) -> UserResponse:
    user = await user_service.create_user(db, body)
    return UserResponse.model_validate(user)


@router.get(
    "/me",
    response_model=UserResponse,
    responses={
        401: {"description": "No X-User-Email header", "model": ErrorResponse},
        404: {"description": "Unknown user", "model": ErrorResponse},
    },
    summary="Get the calling user",
)
async def get_me(user: User = Depends(get_current_user)) -> UserResponse:
    return UserResponse.model_validate(user)
