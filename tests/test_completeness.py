"""Profile completeness and percentage rounding."""
from types import SimpleNamespace

from apps.analytics.completeness import CANDIDATE_FIELDS, COMPANY_FIELDS, calculate_completeness
from framework.numbers import percentage, round_half_up


def test_partial_company_profile():
    company = {"name": "Acme", "email": "   ", "website": None, "industry1": "Tech", "location": ""}
    result = calculate_completeness(company, COMPANY_FIELDS)
    assert result.completed_fields == ["name", "industry1"]
    assert result.total_fields == 10
    assert len(result.missing_fields) == 8
    assert result.score == 20


def test_complete_profile_scores_100():
    company = {field: f"{field} value" for field in COMPANY_FIELDS}
    result = calculate_completeness(company, COMPANY_FIELDS)
    assert result.score == 100
    assert result.missing_fields == []


def test_empty_field_spec_scores_zero():
    result = calculate_completeness({"name": "Acme"}, [])
    assert result.score == 0
    assert result.total_fields == 0
    assert result.completed_fields == [] and result.missing_fields == []


def test_attribute_entity_and_falsy_values():
    candidate = SimpleNamespace(full_name="Ada", email="ada@example.test", skills=[], experience_years=0)
    result = calculate_completeness(candidate, CANDIDATE_FIELDS)
    assert result.completed_fields == ["full_name", "email"]
    assert "skills" in result.missing_fields
    assert "experience_years" in result.missing_fields
    assert result.score == 20


def test_completed_and_missing_partition_the_fields():
    fields = ["a", "b", "c"]
    result = calculate_completeness({"a": 1, "c": "x"}, fields)
    assert sorted(result.completed_fields + result.missing_fields) == fields
    assert result.score == 67


def test_percentage_rounds_half_up():
    assert round_half_up(12.5) == 13
    assert round_half_up(12.49) == 12
    assert percentage(1, 8) == 13
    assert percentage(1, 3) == 33
    assert percentage(5, 0) == 0
