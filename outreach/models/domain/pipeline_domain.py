# outreach/models/domain/pipeline_domain.py
"""
Pipeline Domain Models
Manual sales-pipeline stages tracked per business.
"""

from collections.abc import Mapping
from enum import Enum


class Stage(str, Enum):
    """Outreach stage. Any stage may move to any other stage."""

    NEW = "New"
    CONTACTED = "Contacted"
    ENGAGED = "Engaged"
    QUALIFIED = "Qualified"
    CONVERTED = "Converted"


DEFAULT_STAGE = Stage.NEW


def stage_of(stages: Mapping[str, Stage], business_id: str) -> Stage:
    """Stage for a business; businesses without an assignment are New."""
    return stages.get(business_id, DEFAULT_STAGE)


def parse_stages(raw: Mapping[str, str]) -> dict[str, Stage]:
    """Convert a stored {business_id: "Stage"} mapping, dropping unknown values."""
    stages: dict[str, Stage] = {}
    for business_id, value in raw.items():
        try:
            stages[str(business_id)] = Stage(value)
        except ValueError:
            continue
    return stages

