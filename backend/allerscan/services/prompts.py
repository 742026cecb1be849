"""
AllerScan Backend — LLM Prompt Templates
==========================================

What:  System instructions and user-prompt builders for the two Gemini calls.
How:   System instructions are fixed per model; user prompts are rendered per
       request from the ingredient text or the attending family members.
Who:   GeminiService (system instructions), ScanService and MealService
       (prompt builders).
"""

from typing import Iterable, List, Optional, Sequence

COMMON_ALLERGEN_SENTENCE = (
    "common allergens (milk, eggs, fish, shellfish, tree nuts, peanuts, "
    "wheat, soybeans, sesame)"
)

ANALYSIS_SYSTEM_INSTRUCTION = (
    "You are a professional allergen detection expert who helps families stay safe. "
    "Always respond with valid JSON only."
)

MEAL_SYSTEM_INSTRUCTION = (
    "You are a family nutrition expert specializing in allergy-safe meal planning. "
    "You must respond with valid JSON arrays only. Never include markdown formatting "
    "or explanations - just pure JSON."
)

ANALYSIS_PROMPT_TEMPLATE = """You are an expert food safety analyst specializing in allergen detection.

INGREDIENTS TO ANALYZE:
"{ingredients}"

FAMILY ALLERGIES TO CHECK FOR:
{allergy_list}

Please analyze these ingredients for potential allergen risks and provide a comprehensive safety assessment.

Return your analysis as a JSON object with this exact structure:
{{
  "isProblematic": boolean,
  "detectedAllergens": ["allergen1", "allergen2"],
  "analysis": "detailed explanation of findings",
  "riskLevel": "LOW" | "MEDIUM" | "HIGH" | "CRITICAL",
  "recommendations": ["recommendation1", "recommendation2"],
  "ingredientHighlights": {{
    "safe": ["safe ingredient 1", "safe ingredient 2"],
    "concerning": ["may contain traces", "processed in facility"],
    "problematic": ["direct allergen", "contains allergen"]
  }}
}}

Risk Level Guidelines:
- LOW: No detected allergens, safe for consumption
- MEDIUM: Potential cross-contamination or "may contain" warnings
- HIGH: Contains allergens but not primary family allergies
- CRITICAL: Contains family-specific allergens, DO NOT CONSUME

Be thorough but family-friendly in your language. Focus on clear, actionable guidance for parents protecting their children."""

MEAL_FORMAT_INSTRUCTIONS = """IMPORTANT: You must respond with ONLY a valid JSON array. No other text, explanations, or markdown formatting.

Example format:
[
  {{
    "name": "Grilled Chicken with Vegetables",
    "type": "dinner",
    "ingredients": ["chicken breast", "broccoli", "carrots", "olive oil", "garlic"],
    "prepTime": 15,
    "cookTime": 20,
    "difficulty": "easy",
    "cuisine": "American",
    "description": "Healthy grilled chicken with roasted vegetables",
    "tags": ["gluten-free", "high-protein"],
    "allergenWarnings": [],
    "safetyNotes": "Safe for all listed family members"
  }}
]

Generate exactly {count} meal suggestions following this format."""


def build_analysis_prompt(ingredients: str, allergies: Sequence[str]) -> str:
    """Render the allergen-analysis prompt; an empty list checks common allergens."""
    allergy_list = ", ".join(allergies) if allergies else COMMON_ALLERGEN_SENTENCE
    return ANALYSIS_PROMPT_TEMPLATE.format(ingredients=ingredients, allergy_list=allergy_list)


def _describe_member(member) -> str:
    if not member.allergies:
        return f"- {member.name}: no known allergies"
    parts = [f"{a.name} ({a.severity.lower()})" for a in member.allergies]
    return f"- {member.name}: allergic to {', '.join(parts)}"


def build_meal_prompt(
    members: Iterable,
    meal_types: List[str],
    count: int,
    cooking_time: Optional[str] = None,
    cuisine_preferences: Optional[List[str]] = None,
    special_requests: Optional[str] = None,
    extra_prompt: Optional[str] = None,
) -> str:
    """
    Render the meal-suggestion prompt.

    `members` are FamilyMember rows (or anything with name / allergies[].name /
    allergies[].severity). The JSON example and exact count always close the
    prompt so that free-text instructions cannot override the format.
    """
    member_lines = [_describe_member(m) for m in members]
    lines = [
        f"Suggest {', '.join(meal_types)} meals for a family.",
        "",
        "FAMILY MEMBERS EATING:",
        *(member_lines or ["- (no members specified)"]),
        "",
        "Every suggestion must avoid ALL allergens listed above. "
        "Flag anything that could involve cross-contamination in allergenWarnings.",
    ]
    if cooking_time:
        lines.append(f"Cooking time: {cooking_time}")
    if cuisine_preferences:
        lines.append(f"Preferred cuisines: {', '.join(cuisine_preferences)}")
    if special_requests:
        lines.append(f"Special requests: {special_requests}")
    if extra_prompt:
        lines.extend(["", extra_prompt.strip()])

    lines.extend(["", MEAL_FORMAT_INSTRUCTIONS.format(count=count)])
    return "\n".join(lines)
