"""
AllerScan Backend — ScanHistory SQLAlchemy Model
==================================================

What:  ORM model for the `scan_history` table, one row per ingredient
       analysis, whether the text was pasted or read from a label photo.
Who:   Written by ScanService.analyze(); read by the history endpoints.

Index on created_at:
    History is always listed newest-first and paginated by created_at cursor.
"""

import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Dict, List

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from allerscan.database import Base

if TYPE_CHECKING:
    from allerscan.models.user import User


class ScanHistory(Base):
    """
    A stored allergen analysis.

    Lifecycle:
        Created once, after the AI reply has been normalized and
        cross-referenced. Rows are immutable; users may delete them.
    """

    __tablename__ = "scan_history"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Trimmed ingredient text exactly as analyzed
    ingredients: Mapped[str] = mapped_column(Text, nullable=False)

    # Free-text explanation from the AI
    analysis: Mapped[str] = mapped_column(Text, nullable=False, default="")

    detected_allergens: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)

    # Final (escalated) risk: LOW, MEDIUM, HIGH, CRITICAL
    risk_level: Mapped[str] = mapped_column(String(20), nullable=False)

    is_problematic: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    recommendations: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)

    # `metadata` is reserved on declarative classes, hence the attribute name.
    # Holds checked allergies, ingredient highlights, member matches,
    # the AI's own risk level, worst severity and the analysis timestamp.
    scan_metadata: Mapped[Dict[str, Any]] = mapped_column(
        "metadata",
        JSON,
        nullable=False,
        default=dict,
    )

    # text | image
    source: Mapped[str] = mapped_column(String(10), nullable=False, default="text")

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    user: Mapped["User"] = relationship(back_populates="scans")

    __table_args__ = (
        Index("idx_scan_history_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<ScanHistory(id={self.id}, risk_level='{self.risk_level}', "
            f"created_at='{self.created_at}')>"
        )
