"""
Profile completeness scoring.
"""

from collections.abc import Mapping
from typing import Any, List, Sequence
from pydantic import BaseModel
from framework.numbers import percentage

COMPANY_FIELDS = (
    "name", "email", "website", "industry1", "location",
    "phone", "description", "linkedin", "twitter", "facebook",
)
CANDIDATE_FIELDS = (
    "full_name", "email", "phone", "location", "current_title",
    "current_company", "skills", "linkedin_url", "resume_url", "experience_years",
)
FIELD_SPECS = {"company": COMPANY_FIELDS, "candidate": CANDIDATE_FIELDS}


class CompletenessResult(BaseModel):
    score: int
    completed_fields: List[str]
    missing_fields: List[str]
    total_fields: int


def _value(entity: Any, field: str) -> Any:
    if isinstance(entity, Mapping):
        return entity.get(field)
    return getattr(entity, field, None)


def is_filled(value: Any) -> bool:
    """Truthy and not just whitespace."""
    if not value:
        return False
    return bool(str(value).strip())


def calculate_completeness(entity: Any, field_spec: Sequence[str]) -> CompletenessResult:
    completed = [field for field in field_spec if is_filled(_value(entity, field))]
    missing = [field for field in field_spec if field not in completed]
    return CompletenessResult(
        score=percentage(len(completed), len(field_spec)),
        completed_fields=completed,
        missing_fields=missing,
        total_fields=len(field_spec),
    )
