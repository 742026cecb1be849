"""
AllerScan Backend — Family Service Tests
==========================================

What:  Roster CRUD against an in-memory SQLite database.

What we test:
    ✅ Default family created once, on first access
    ✅ Add / update / delete with the full roster returned each time
    ✅ Allergy list replaced wholesale on update
    ✅ Blank names and foreign member IDs rejected
    ✅ Attendee selection for meal planning
"""

import uuid

import pytest
from sqlalchemy import func, select

from allerscan.config import settings
from allerscan.exceptions import NotFoundError, ValidationError
from allerscan.models.family import Allergy, Family
from allerscan.models.user import User
from allerscan.schemas.family import FamilyMemberIn
from allerscan.services.family_service import family_service


def _member_in(name="Ava", role="child", allergies=None, age=None):
    return FamilyMemberIn(name=name, role=role, age=age, allergies=allergies or [])


class TestFamilyRoster:

    @pytest.mark.asyncio
    async def test_default_family_created_once(self, db_session, user):
        first = await family_service.get_family(db_session, user)
        second = await family_service.get_family(db_session, user)

        assert first.family_id == second.family_id
        assert first.family_name == settings.default_family_name
        assert first.family_members == []
        count = (await db_session.execute(select(func.count(Family.id)))).scalar()
        assert count == 1

    @pytest.mark.asyncio
    async def test_add_member_with_allergies(self, db_session, user):
        data = _member_in(
            allergies=[
                {"allergen": "Peanuts", "severity": "Life-Threatening", "notes": "Carries EpiPen"},
                {"allergen": "eggs", "severity": "mild"},
            ],
            age=7,
        )

        result = await family_service.add_member(db_session, user, data)

        assert result.success is True
        assert result.member.name == "Ava"
        assert result.member.age == 7
        # Sorted by allergen name, severity lower-case
        assert [(a.allergen, a.severity) for a in result.member.allergies] == [
            ("eggs", "mild"),
            ("Peanuts", "life_threatening"),
        ]
        assert result.member.allergies[1].notes == "Carries EpiPen"
        assert len(result.family_members) == 1

    @pytest.mark.asyncio
    async def test_severity_stored_upper_case(self, db_session, user):
        await family_service.add_member(
            db_session, user, _member_in(allergies=[{"allergen": "Milk", "severity": "severe"}])
        )
        stored = (await db_session.execute(select(Allergy.severity))).scalar_one()
        assert stored == "SEVERE"

    @pytest.mark.asyncio
    async def test_blank_name_rejected(self, db_session, user):
        with pytest.raises(ValidationError, match="Name is required"):
            await family_service.add_member(db_session, user, _member_in(name="   "))

    @pytest.mark.asyncio
    async def test_update_replaces_allergies(self, db_session, user):
        added = await family_service.add_member(
            db_session,
            user,
            _member_in(allergies=[{"allergen": "Peanuts", "severity": "severe"}, {"allergen": "Soy"}]),
        )
        member_id = added.member.id

        updated = await family_service.update_member(
            db_session,
            user,
            member_id,
            _member_in(name="Ava Grace", role="child", allergies=[{"allergen": "Sesame", "severity": "moderate"}]),
        )

        assert updated.member.id == member_id
        assert updated.member.name == "Ava Grace"
        assert [a.allergen for a in updated.member.allergies] == ["Sesame"]
        remaining = (await db_session.execute(select(func.count(Allergy.id)))).scalar()
        assert remaining == 1

    @pytest.mark.asyncio
    async def test_update_unknown_member_is_not_found(self, db_session, user):
        with pytest.raises(NotFoundError):
            await family_service.update_member(db_session, user, uuid.uuid4(), _member_in())

    @pytest.mark.asyncio
    async def test_delete_member_removes_allergies(self, db_session, user):
        keep = await family_service.add_member(db_session, user, _member_in(name="Ben", role="parent"))
        drop = await family_service.add_member(
            db_session, user, _member_in(allergies=[{"allergen": "Milk", "severity": "mild"}])
        )

        result = await family_service.delete_member(db_session, user, drop.member.id)

        assert result.member is None
        assert [m.id for m in result.family_members] == [keep.member.id]
        remaining = (await db_session.execute(select(func.count(Allergy.id)))).scalar()
        assert remaining == 0

    @pytest.mark.asyncio
    async def test_other_users_member_is_not_found(self, db_session, user):
        other = User(email="other@example.com")
        db_session.add(other)
        await db_session.flush()
        theirs = await family_service.add_member(db_session, other, _member_in(name="Stranger"))

        with pytest.raises(NotFoundError):
            await family_service.delete_member(db_session, user, theirs.member.id)


class TestAttendingMembers:

    @pytest.mark.asyncio
    async def test_none_means_everyone(self, db_session, user):
        await family_service.add_member(db_session, user, _member_in(name="Ava"))
        await family_service.add_member(db_session, user, _member_in(name="Ben"))

        attending = await family_service.get_attending_members(db_session, user, None)
        assert sorted(m.name for m in attending) == ["Ava", "Ben"]

    @pytest.mark.asyncio
    async def test_selected_ids_only_and_unknown_ignored(self, db_session, user):
        ava = await family_service.add_member(db_session, user, _member_in(name="Ava"))
        await family_service.add_member(db_session, user, _member_in(name="Ben"))

        attending = await family_service.get_attending_members(
            db_session, user, [ava.member.id, uuid.uuid4()]
        )
        assert [m.name for m in attending] == ["Ava"]

    @pytest.mark.asyncio
    async def test_empty_selection_means_nobody(self, db_session, user):
        await family_service.add_member(db_session, user, _member_in(name="Ava"))
        assert await family_service.get_attending_members(db_session, user, []) == []
