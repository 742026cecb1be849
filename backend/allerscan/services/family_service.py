"""
AllerScan Backend — Family Service
====================================

What:  CRUD for the caller's family members and their allergies.
How:   Every user has exactly one default family, created on first access.
       Members and allergies are always loaded (selectin), so mutations work
       on in-memory collections and a single flush persists them.
Who:   Family routes; ScanService and MealService read members through
       get_members().

Allergy updates are wholesale: PUT replaces the member's allergy list with
the submitted one, and delete-orphan removes whatever was dropped.
"""

import logging
from typing import List
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from allerscan.config import settings
from allerscan.exceptions import DatabaseError, NotFoundError, ValidationError
from allerscan.models.family import Allergy, Family, FamilyMember
from allerscan.models.user import User
from allerscan.schemas.family import (
    AllergyIn,
    AllergyOut,
    FamilyMemberIn,
    FamilyMemberOut,
    FamilyMutationResponse,
    FamilyResponse,
    normalize_severity,
)

logger = logging.getLogger(__name__)


def _allergy_from_input(data: AllergyIn) -> Allergy:
    return Allergy(
        name=data.allergen,
        severity=data.severity.upper(),
        symptoms=data.symptoms,
        notes=data.notes,
    )


def member_to_schema(member: FamilyMember) -> FamilyMemberOut:
    """API shape of a member; allergies sorted by name, severity lower-case."""
    allergies = sorted(member.allergies, key=lambda a: a.name.lower())
    return FamilyMemberOut(
        id=member.id,
        name=member.name,
        role=member.role,
        age=member.age,
        allergies=[
            AllergyOut(
                id=a.id,
                allergen=a.name,
                severity=normalize_severity(a.severity),
                symptoms=a.symptoms,
                notes=a.notes,
            )
            for a in allergies
        ],
    )


class FamilyService:
    """
    Business logic for the family roster.

    Every mutation returns the full roster so the client can re-render
    without a second request.
    """

    async def get_or_create_family(self, db: AsyncSession, user: User) -> Family:
        """
        Return the user's family, creating the default one if missing.

        Raises:
            DatabaseError: query or insert failed
        """
        try:
            result = await db.execute(
                select(Family)
                .where(Family.user_id == user.id)
                .order_by(Family.created_at)
                .limit(1)
            )
            family = result.scalar_one_or_none()
            if family is not None:
                return family

            # members=[] initializes the collection so it never lazy-loads
            family = Family(user_id=user.id, name=settings.default_family_name, members=[])
            db.add(family)
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error loading family for user %s: %s", user.id, type(e).__name__)
            raise DatabaseError(context={"error_type": type(e).__name__})

        logger.info("Created default family %s for user %s", family.id, user.id)
        return family

    async def get_members(self, db: AsyncSession, user: User) -> List[FamilyMember]:
        family = await self.get_or_create_family(db, user)
        return list(family.members)

    async def get_family(self, db: AsyncSession, user: User) -> FamilyResponse:
        family = await self.get_or_create_family(db, user)
        return FamilyResponse(
            family_id=family.id,
            family_name=family.name,
            family_members=[member_to_schema(m) for m in family.members],
        )

    @staticmethod
    def _require_name(data: FamilyMemberIn) -> None:
        if not data.name:
            raise ValidationError(message="Name is required", field="name")

    @staticmethod
    def _find_member(family: Family, member_id: UUID) -> FamilyMember:
        for member in family.members:
            if member.id == member_id:
                return member
        raise NotFoundError(resource="family member", resource_id=str(member_id))

    async def _flush(self, db: AsyncSession, action: str) -> None:
        try:
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error during %s: %s", action, type(e).__name__, exc_info=True)
            raise DatabaseError(context={"action": action, "error_type": type(e).__name__})

    def _mutation_response(self, family: Family, member: FamilyMember = None) -> FamilyMutationResponse:
        return FamilyMutationResponse(
            member=member_to_schema(member) if member is not None else None,
            family_members=[member_to_schema(m) for m in family.members],
        )

    async def add_member(self, db: AsyncSession, user: User, data: FamilyMemberIn) -> FamilyMutationResponse:
        """
        Raises:
            ValidationError: blank name (→ 400)
        """
        self._require_name(data)
        family = await self.get_or_create_family(db, user)

        member = FamilyMember(
            name=data.name,
            role=data.role,
            age=data.age,
            allergies=[_allergy_from_input(a) for a in data.allergies],
        )
        family.members.append(member)
        await self._flush(db, "add member")

        logger.info("Added member %s with %d allergies to family %s", member.id, len(member.allergies), family.id)
        return self._mutation_response(family, member)

    async def update_member(
        self,
        db: AsyncSession,
        user: User,
        member_id: UUID,
        data: FamilyMemberIn,
    ) -> FamilyMutationResponse:
        """
        Overwrite a member's details and replace their allergy list.

        Raises:
            ValidationError: blank name (→ 400)
            NotFoundError: member is not in the caller's family (→ 404)
        """
        self._require_name(data)
        family = await self.get_or_create_family(db, user)
        member = self._find_member(family, member_id)

        member.name = data.name
        member.role = data.role
        member.age = data.age
        member.allergies = [_allergy_from_input(a) for a in data.allergies]
        await self._flush(db, "update member")

        logger.info("Updated member %s (%d allergies)", member.id, len(member.allergies))
        return self._mutation_response(family, member)

    async def delete_member(self, db: AsyncSession, user: User, member_id: UUID) -> FamilyMutationResponse:
        """
        Remove a member; their allergies go with them.

        Raises:
            NotFoundError: member is not in the caller's family (→ 404)
        """
        family = await self.get_or_create_family(db, user)
        member = self._find_member(family, member_id)

        family.members.remove(member)
        await self._flush(db, "delete member")

        logger.info("Deleted member %s from family %s", member_id, family.id)
        return self._mutation_response(family)

    async def get_attending_members(
        self,
        db: AsyncSession,
        user: User,
        member_ids: List[UUID] = None,
    ) -> List[FamilyMember]:
        """
        Members taking part in a meal.

        None means everyone; IDs outside the caller's family are ignored.
        """
        members = await self.get_members(db, user)
        if member_ids is None:
            return members
        wanted = set(member_ids)
        return [m for m in members if m.id in wanted]


family_service = FamilyService()
