"""
AllerScan Backend — Family, FamilyMember and Allergy Models
=============================================================

What:  ORM models for a user's household and each member's recorded allergies.
How:   Family 1─* FamilyMember 1─* Allergy. Member and allergy collections
       are loaded with `selectin` so they are always available on async
       sessions without lazy IO.
Who:   FamilyService (CRUD), ScanService and MealService (cross-referencing).

Ownership chain:
    users ─< families ─< family_members ─< allergies

    Every foreign key cascades on delete, so removing a member removes its
    allergies and removing a user removes everything beneath it.

Severity storage:
    Stored upper-case (MILD, MODERATE, SEVERE, LIFE_THREATENING) and exposed
    lower-case by the API schemas.
"""

import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from allerscan.database import Base

if TYPE_CHECKING:
    from allerscan.models.user import User


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Family(Base):
    """
    A household owned by one user.

    The API works with a single default family per user, created lazily
    on first access (see FamilyService.get_or_create_family).
    """

    __tablename__ = "families"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )

    user: Mapped["User"] = relationship(back_populates="families")

    members: Mapped[List["FamilyMember"]] = relationship(
        back_populates="family",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="FamilyMember.created_at",
    )

    def __repr__(self) -> str:
        return f"<Family(id={self.id}, name='{self.name}')>"


class FamilyMember(Base):
    """A person in the household whose allergies are tracked."""

    __tablename__ = "family_members"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    family_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("families.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # parent | child | other
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="other")

    age: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, default=None)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )

    family: Mapped["Family"] = relationship(back_populates="members")

    allergies: Mapped[List["Allergy"]] = relationship(
        back_populates="member",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="Allergy.name",
    )

    def __repr__(self) -> str:
        return f"<FamilyMember(id={self.id}, name='{self.name}', role='{self.role}')>"


class Allergy(Base):
    """One recorded allergy of a family member."""

    __tablename__ = "allergies"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    member_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("family_members.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Free text as entered ("Peanuts", "tree nuts", "Red dye 40")
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    severity: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="MODERATE",
        comment="MILD, MODERATE, SEVERE or LIFE_THREATENING",
    )

    symptoms: Mapped[Optional[str]] = mapped_column(Text, nullable=True, default=None)

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True, default=None)

    member: Mapped["FamilyMember"] = relationship(back_populates="allergies")

    def __repr__(self) -> str:
        return f"<Allergy(name='{self.name}', severity='{self.severity}')>"
