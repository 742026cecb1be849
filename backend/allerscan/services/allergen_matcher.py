"""
AllerScan Backend — Allergen Cross-Referencing
================================================

What:  Pure functions that relate the AI's detected allergens to the
       allergies recorded for a family, and reshape the AI reply.
How:   Case-insensitive substring containment in either direction
       ("peanut" matches "peanuts", "tree nuts" matches "nuts").
Who:   ScanService (analysis), MealService (meal safety check).

No I/O happens here. Members are FamilyMember rows, or any object exposing
`id`, `name` and `allergies` whose items expose `name` and `severity`.

Escalation table (worst matched severity → minimum risk level):
    mild              → MEDIUM
    moderate          → HIGH
    severe            → CRITICAL
    life_threatening  → CRITICAL
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from allerscan.exceptions import AIResponseFormatError
from allerscan.schemas.family import SEVERITY_LEVELS, normalize_severity
from allerscan.schemas.scan import RISK_LEVELS

logger = logging.getLogger(__name__)

COMMON_ALLERGENS = [
    "milk",
    "eggs",
    "fish",
    "shellfish",
    "tree nuts",
    "peanuts",
    "wheat",
    "soybeans",
    "sesame",
]

DEFAULT_RISK_LEVEL = "MEDIUM"

SEVERITY_RISK_FLOOR = {
    "mild": "MEDIUM",
    "moderate": "HIGH",
    "severe": "CRITICAL",
    "life_threatening": "CRITICAL",
}


def allergen_matches(recorded: str, detected: str) -> bool:
    """True when either string contains the other, ignoring case and padding."""
    a = (recorded or "").strip().lower()
    b = (detected or "").strip().lower()
    if not a or not b:
        return False
    return a in b or b in a


def collect_family_allergens(members: Iterable) -> List[str]:
    """Unique allergy names across all members, first spelling wins."""
    seen = set()
    names = []
    for member in members:
        for allergy in member.allergies:
            key = allergy.name.strip().lower()
            if not key or key in seen:
                continue
            seen.add(key)
            names.append(allergy.name.strip())
    return names


def find_member_matches(members: Iterable, detected: List[str]) -> List[Dict[str, Any]]:
    """
    Pair every recorded allergy with every detected allergen it matches.

    Returns:
        List of {member_id, member_name, allergen, detected_as, severity}
        records, severity as the lower-case key.
    """
    matches = []
    for member in members:
        for allergy in member.allergies:
            for found in detected:
                if allergen_matches(allergy.name, found):
                    matches.append({
                        "member_id": member.id,
                        "member_name": member.name,
                        "allergen": allergy.name,
                        "detected_as": found,
                        "severity": _severity_key(allergy.severity),
                    })
    return matches


def _severity_key(value: Optional[str]) -> str:
    try:
        return normalize_severity(value or "moderate")
    except ValueError:
        logger.warning("Unknown stored severity %r, treating as moderate", value)
        return "moderate"


def worst_severity(matches: List[Dict[str, Any]]) -> Optional[str]:
    if not matches:
        return None
    return max((m["severity"] for m in matches), key=SEVERITY_LEVELS.index)


def escalate_risk(ai_risk: str, severity: Optional[str]) -> str:
    """
    Raise the AI risk level to the floor implied by the worst severity.

    The result is never lower than what the AI reported.
    """
    if severity is None:
        return ai_risk
    floor = SEVERITY_RISK_FLOOR[severity]
    return max(ai_risk, floor, key=RISK_LEVELS.index)


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str)]


def normalize_analysis(payload: Any) -> Dict[str, Any]:
    """
    Reshape the AI JSON object into snake_case with every field present.

    Raises:
        AIResponseFormatError: payload is not a JSON object
    """
    if not isinstance(payload, dict):
        raise AIResponseFormatError(
            message="Failed to parse AI response",
            raw_content=repr(payload),
        )

    detected = _string_list(payload.get("detectedAllergens"))

    risk = payload.get("riskLevel")
    risk = risk.strip().upper() if isinstance(risk, str) else ""
    if risk not in RISK_LEVELS:
        risk = DEFAULT_RISK_LEVEL

    flag = payload.get("isProblematic")
    is_problematic = flag if isinstance(flag, bool) else bool(detected)

    analysis = payload.get("analysis")
    highlights = payload.get("ingredientHighlights")
    if not isinstance(highlights, dict):
        highlights = {}

    return {
        "is_problematic": is_problematic,
        "detected_allergens": detected,
        "analysis": analysis if isinstance(analysis, str) else "",
        "risk_level": risk,
        "recommendations": _string_list(payload.get("recommendations")),
        "ingredient_highlights": {
            "safe": _string_list(highlights.get("safe")),
            "concerning": _string_list(highlights.get("concerning")),
            "problematic": _string_list(highlights.get("problematic")),
        },
    }


def cross_reference(analysis: Dict[str, Any], members: Iterable) -> Dict[str, Any]:
    """
    Combine a normalized AI analysis with the family's recorded allergies.

    Returns the normalized analysis plus ai_risk_level, worst_severity and
    member_matches; risk_level and is_problematic are the final values.
    """
    matches = find_member_matches(members, analysis["detected_allergens"])
    severity = worst_severity(matches)
    return {
        **analysis,
        "ai_risk_level": analysis["risk_level"],
        "risk_level": escalate_risk(analysis["risk_level"], severity),
        "is_problematic": analysis["is_problematic"] or bool(matches),
        "worst_severity": severity,
        "member_matches": matches,
    }


def check_meal_safety(ingredients: List[str], attending_members: List) -> Dict[str, Any]:
    """
    Flag ingredients that match an allergy of anyone attending the meal.

    Returns:
        {is_safe, risks, attending_members}; risks is the meal's ingredient
        list filtered as given, so spelling, order and repeats are kept.
    """
    allergens = [
        allergy.name
        for member in attending_members
        for allergy in member.allergies
    ]
    risks = [
        ingredient
        for ingredient in ingredients
        if any(allergen_matches(allergen, ingredient) for allergen in allergens)
    ]
    return {
        "is_safe": not risks,
        "risks": risks,
        "attending_members": len(attending_members),
    }
