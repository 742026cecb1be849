"""
AllerScan Backend — Allergen Matcher Unit Tests
=================================================

What:  Tests for the pure cross-referencing functions.
How:   Duck-typed members from the make_member fixture; no database.

What we test:
    ✅ Substring matching in both directions, case and padding ignored
    ✅ Family allergy collection and de-duplication
    ✅ Worst severity and risk escalation table
    ✅ AI reply normalization defaults
    ✅ Meal safety check
"""

import pytest

from allerscan.exceptions import AIResponseFormatError
from allerscan.services.allergen_matcher import (
    COMMON_ALLERGENS,
    allergen_matches,
    check_meal_safety,
    collect_family_allergens,
    cross_reference,
    escalate_risk,
    find_member_matches,
    normalize_analysis,
    worst_severity,
)


class TestAllergenMatches:

    def test_exact_match_ignores_case(self):
        assert allergen_matches("Peanuts", "peanuts")

    def test_recorded_inside_detected(self):
        assert allergen_matches("milk", "skim milk powder")

    def test_detected_inside_recorded(self):
        assert allergen_matches("tree nuts", "nuts")

    def test_whitespace_is_trimmed(self):
        assert allergen_matches("  Eggs ", "eggs")

    def test_unrelated_strings_do_not_match(self):
        assert not allergen_matches("sesame", "wheat")

    @pytest.mark.parametrize("recorded, detected", [("", "milk"), ("milk", ""), ("   ", "milk"), (None, "milk")])
    def test_empty_side_never_matches(self, recorded, detected):
        assert not allergen_matches(recorded, detected)


class TestCollectFamilyAllergens:

    def test_first_spelling_wins_and_order_is_kept(self, make_member):
        members = [
            make_member("Ava", ("Peanuts", "SEVERE"), ("Milk", "MILD")),
            make_member("Ben", ("peanuts", "MILD"), ("Sesame", "MODERATE")),
        ]
        assert collect_family_allergens(members) == ["Peanuts", "Milk", "Sesame"]

    def test_no_members_gives_empty_list(self):
        assert collect_family_allergens([]) == []

    def test_common_allergens_are_the_nine_majors(self):
        assert len(COMMON_ALLERGENS) == 9
        assert "tree nuts" in COMMON_ALLERGENS
        assert "sesame" in COMMON_ALLERGENS


class TestMemberMatchesAndSeverity:

    def test_records_each_member_allergy_match(self, make_member):
        ava = make_member("Ava", ("Peanuts", "LIFE_THREATENING"))
        ben = make_member("Ben", ("milk", "MILD"), ("soy", "MODERATE"))

        matches = find_member_matches([ava, ben], ["peanut", "milk powder"])

        assert [(m["member_name"], m["allergen"], m["detected_as"]) for m in matches] == [
            ("Ava", "Peanuts", "peanut"),
            ("Ben", "milk", "milk powder"),
        ]
        assert matches[0]["member_id"] == ava.id
        assert matches[0]["severity"] == "life_threatening"

    def test_no_detected_allergens_no_matches(self, make_member):
        assert find_member_matches([make_member("Ava", ("Peanuts", "SEVERE"))], []) == []

    def test_worst_severity_picks_highest(self):
        matches = [{"severity": "mild"}, {"severity": "severe"}, {"severity": "moderate"}]
        assert worst_severity(matches) == "severe"

    def test_worst_severity_none_without_matches(self):
        assert worst_severity([]) is None


class TestEscalateRisk:

    @pytest.mark.parametrize("severity, expected", [
        ("mild", "MEDIUM"),
        ("moderate", "HIGH"),
        ("severe", "CRITICAL"),
        ("life_threatening", "CRITICAL"),
    ])
    def test_low_ai_risk_raised_to_floor(self, severity, expected):
        assert escalate_risk("LOW", severity) == expected

    def test_never_lowers_ai_risk(self):
        assert escalate_risk("CRITICAL", "mild") == "CRITICAL"
        assert escalate_risk("HIGH", "mild") == "HIGH"

    def test_no_severity_keeps_ai_risk(self):
        assert escalate_risk("LOW", None) == "LOW"


class TestNormalizeAnalysis:

    def test_well_formed_reply(self, ai_reply):
        result = normalize_analysis(ai_reply)
        assert result["detected_allergens"] == ["peanuts", "milk"]
        assert result["risk_level"] == "HIGH"
        assert result["is_problematic"] is True
        assert result["ingredient_highlights"]["problematic"] == ["peanuts", "milk powder"]

    def test_empty_object_gets_defaults(self):
        result = normalize_analysis({})
        assert result == {
            "is_problematic": False,
            "detected_allergens": [],
            "analysis": "",
            "risk_level": "MEDIUM",
            "recommendations": [],
            "ingredient_highlights": {"safe": [], "concerning": [], "problematic": []},
        }

    def test_missing_flag_follows_detected_list(self):
        result = normalize_analysis({"detectedAllergens": ["eggs"], "riskLevel": "LOW"})
        assert result["is_problematic"] is True

    def test_unknown_risk_level_defaults_to_medium(self):
        assert normalize_analysis({"riskLevel": "EXTREME"})["risk_level"] == "MEDIUM"

    def test_risk_level_case_is_normalized(self):
        assert normalize_analysis({"riskLevel": " critical "})["risk_level"] == "CRITICAL"

    def test_non_string_entries_dropped(self):
        result = normalize_analysis({"detectedAllergens": ["milk", 3, None, {"x": 1}]})
        assert result["detected_allergens"] == ["milk"]

    def test_malformed_highlights_become_empty_lists(self):
        result = normalize_analysis({"ingredientHighlights": "none"})
        assert result["ingredient_highlights"] == {"safe": [], "concerning": [], "problematic": []}

    @pytest.mark.parametrize("payload", [[], "text", None, 42])
    def test_non_object_rejected(self, payload):
        with pytest.raises(AIResponseFormatError):
            normalize_analysis(payload)


class TestCrossReference:

    def test_member_match_escalates_and_flags(self, make_member):
        analysis = normalize_analysis({
            "isProblematic": False,
            "detectedAllergens": ["Peanut oil"],
            "riskLevel": "LOW",
        })
        result = cross_reference(analysis, [make_member("Ava", ("peanut", "SEVERE"))])

        assert result["ai_risk_level"] == "LOW"
        assert result["risk_level"] == "CRITICAL"
        assert result["worst_severity"] == "severe"
        assert result["is_problematic"] is True
        assert len(result["member_matches"]) == 1

    def test_no_match_leaves_ai_values(self, make_member):
        analysis = normalize_analysis({"detectedAllergens": ["wheat"], "riskLevel": "HIGH"})
        result = cross_reference(analysis, [make_member("Ava", ("milk", "SEVERE"))])

        assert result["risk_level"] == "HIGH"
        assert result["worst_severity"] is None
        assert result["member_matches"] == []


class TestCheckMealSafety:

    def test_flags_matching_ingredients(self, make_member):
        members = [make_member("Ava", ("peanuts", "SEVERE")), make_member("Ben", ("Milk", "MILD"))]
        result = check_meal_safety(["crushed peanuts", "bread", "whole milk"], members)

        assert result == {
            "is_safe": False,
            "risks": ["crushed peanuts", "whole milk"],
            "attending_members": 2,
        }

    def test_repeated_ingredients_listed_each_time(self, make_member):
        members = [make_member("Ava", ("Milk", "MILD"))]
        result = check_meal_safety(["whole milk", "flour", "whole milk", "Milk"], members)
        assert result["risks"] == ["whole milk", "whole milk", "Milk"]

    def test_safe_when_no_attendee_allergy_matches(self, make_member):
        result = check_meal_safety(["rice", "chicken"], [make_member("Ava", ("shellfish", "SEVERE"))])
        assert result["is_safe"] is True
        assert result["risks"] == []

    def test_nobody_attending_is_safe(self):
        result = check_meal_safety(["peanuts"], [])
        assert result == {"is_safe": True, "risks": [], "attending_members": 0}
