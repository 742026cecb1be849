"""
AllerScan Backend — User SQLAlchemy Model
===========================================

What:  ORM model for the `users` table, the account that owns a family
       and a scan history.
Who:   Resolved from the X-User-Email header by the `get_current_user`
       dependency; created by POST /api/users.

Emails are stored lower-cased so lookups are case-insensitive without a
functional index.
"""

import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import DateTime, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from allerscan.database import Base

if TYPE_CHECKING:
    from allerscan.models.family import Family
    from allerscan.models.scan import ScanHistory


class User(Base):
    """A registered account."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
        index=True,
        comment="Lower-cased login email, supplied by the fronting auth layer",
    )

    name: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        default=None,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    families: Mapped[List["Family"]] = relationship(
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    scans: Mapped[List["ScanHistory"]] = relationship(
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}')>"
