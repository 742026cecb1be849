"""
AllerScan Backend — Family Request/Response Schemas
=====================================================

What:  API contract for family members and their allergies.
How:   Request models normalize free-form input (severity spellings, role
       case, blank strings); response models carry lower-case severities.

Severity vocabulary:
    mild < moderate < severe < life_threatening

    Input also accepts "Life-Threatening", "life threatening", "SEVERE" etc.
    Storage is upper-case; see models/family.py.
"""

import re
import uuid
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

SEVERITY_LEVELS = ("mild", "moderate", "severe", "life_threatening")
MEMBER_ROLES = ("parent", "child", "other")


def normalize_severity(value: str) -> str:
    """
    Map any accepted severity spelling to its canonical lower-case key.

    Raises:
        ValueError: for values outside SEVERITY_LEVELS
    """
    key = re.sub(r"[\s\-]+", "_", str(value).strip().lower())
    if key not in SEVERITY_LEVELS:
        raise ValueError(
            f"Invalid severity '{value}'. Must be one of: {', '.join(SEVERITY_LEVELS)}"
        )
    return key


def _blank_to_none(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    return v.strip() or None


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class AllergyIn(BaseModel):
    """One allergy as submitted by the family form."""
    allergen: str = Field(min_length=1, max_length=255, description="Allergen name, e.g. 'Peanuts'")
    severity: str = Field(default="moderate", description="mild, moderate, severe, life_threatening")
    symptoms: Optional[str] = Field(default=None, description="Typical reaction")
    notes: Optional[str] = Field(default=None, description="Free-form notes (e.g. 'carry EpiPen')")

    @field_validator("allergen")
    @classmethod
    def strip_allergen(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("Allergen name must not be blank")
        return stripped

    @field_validator("severity")
    @classmethod
    def validate_severity(cls, v: str) -> str:
        return normalize_severity(v)

    @field_validator("symptoms", "notes")
    @classmethod
    def blank_text_is_none(cls, v: Optional[str]) -> Optional[str]:
        return _blank_to_none(v)


class FamilyMemberIn(BaseModel):
    """
    Body of POST /api/family and PUT /api/family/{member_id}.

    `name` is not length-checked here so that a blank name reaches the
    service and produces the 400 "Name is required" business error.
    """
    name: str = Field(default="", max_length=255, description="Member's name")
    age: Optional[int] = Field(default=None, ge=0, le=120, description="Age in years")
    role: str = Field(default="other", description="parent, child or other")
    allergies: List[AllergyIn] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        return v.strip()

    @field_validator("role")
    @classmethod
    def validate_role(cls, v: str) -> str:
        role = v.strip().lower()
        if role not in MEMBER_ROLES:
            raise ValueError(f"Invalid role '{v}'. Must be one of: {', '.join(MEMBER_ROLES)}")
        return role

    @field_validator("allergies")
    @classmethod
    def dedupe_allergies(cls, v: List[AllergyIn]) -> List[AllergyIn]:
        """Keeps the first entry for each allergen (case-insensitive)."""
        seen = set()
        unique = []
        for allergy in v:
            key = allergy.allergen.lower()
            if key in seen:
                continue
            seen.add(key)
            unique.append(allergy)
        return unique


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class AllergyOut(BaseModel):
    id: uuid.UUID
    allergen: str
    severity: str = Field(description="Lower-case severity key")
    symptoms: Optional[str] = None
    notes: Optional[str] = None


class FamilyMemberOut(BaseModel):
    id: uuid.UUID
    name: str
    role: str
    age: Optional[int] = None
    allergies: List[AllergyOut] = Field(default_factory=list)


class FamilyResponse(BaseModel):
    """Returned by GET /api/family."""
    family_id: uuid.UUID
    family_name: str
    family_members: List[FamilyMemberOut]


class FamilyMutationResponse(BaseModel):
    """Returned by POST, PUT and DELETE on /api/family; always the full roster."""
    success: bool = True
    member: Optional[FamilyMemberOut] = Field(
        default=None,
        description="The created or updated member (absent on delete)",
    )
    family_members: List[FamilyMemberOut]
