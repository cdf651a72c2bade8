from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator

RECOMMENDATIONS: tuple[str, ...] = ("Strong Hire", "Hire", "Weak Hire", "Reject")


class ScreeningRequest(BaseModel):
    job_description: str = Field(default="", max_length=120000)
    resume_text: str = Field(default="", max_length=120000)


class ScreeningResult(BaseModel):
    score: int
    strengths: list[str]
    gaps: list[str]
    # Kept as free text; see DESIGN.md on unknown recommendations.
    recommendation: str
    summary: str

    @field_validator("score", mode="before")
    @classmethod
    def _round_score(cls, value: Any) -> Any:
        if isinstance(value, float):
            return round(value)
        return value

    @field_validator("strengths", "gaps", mode="before")
    @classmethod
    def _listify(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [value]
        return value


class ScreeningRecord(BaseModel):
    id: str
    job_title: str
    score: int
    recommendation: str
    created_at: datetime
    created_by: str
