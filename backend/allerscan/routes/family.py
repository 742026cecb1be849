"""
AllerScan Backend — Family Route Handlers
===========================================

What:  Roster management for the caller's default family.

    GET    /api/family               → {family_id, family_name, family_members}
    POST   /api/family               → add a member (with allergies)
    PUT    /api/family/{member_id}   → overwrite a member, allergies replaced
    DELETE /api/family/{member_id}   → remove a member and their allergies

Every mutation answers with the full roster.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from allerscan.database import get_db_session
from allerscan.dependencies import get_current_user
from allerscan.models.user import User
from allerscan.schemas.common import ErrorResponse
from allerscan.schemas.family import FamilyMemberIn, FamilyMutationResponse, FamilyResponse
from allerscan.services.family_service import family_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/family", tags=["Family"])

_ERRORS = {
    400: {"description": "Invalid member data", "model": ErrorResponse},
    401: {"description": "No X-User-Email header", "model": ErrorResponse},
    404: {"description": "User or member not found", "model": ErrorResponse},
}


@router.get(
    "",
    response_model=FamilyResponse,
    responses=_ERRORS,
    summary="Get the family roster",
    description="Returns the caller's family, creating an empty default family on first access.",
)
async def get_family(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> FamilyResponse:
    return await family_service.get_family(db, user)


@router.post(
    "",
    response_model=FamilyMutationResponse,
    responses=_ERRORS,
    summary="Add a family member",
)
async def add_member(
    body: FamilyMemberIn,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> FamilyMutationResponse:
    return await family_service.add_member(db, user, body)


@router.put(
    "/{member_id}",
    response_model=FamilyMutationResponse,
    responses=_ERRORS,
    summary="Update a family member",
    description="Overwrites name, role and age; the allergy list replaces the stored one.",
)
async def update_member(
    member_id: UUID,
    body: FamilyMemberIn,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> FamilyMutationResponse:
    return await family_service.update_member(db, user, member_id, body)


@router.delete(
    "/{member_id}",
    response_model=FamilyMutationResponse,
    response_model_exclude={"member"},
    responses=_ERRORS,
    summary="Remove a family member",
)
async def delete_member(
    member_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> FamilyMutationResponse:
    return await family_service.delete_member(db, user, member_id)
