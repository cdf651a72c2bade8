from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

InterviewSender = Literal["ai", "candidate"]
InterviewStateName = Literal["not_started", "active", "terminated"]


def _as_unique_strings(value: Any) -> Any:
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)):
        return value
    seen: list[str] = []
    for item in value:
        text = str(item).strip()
        if text and text not in seen:
            seen.append(text)
    return seen


class InterviewTurn(BaseModel):
    sender: InterviewSender
    text: str


class Feedback(BaseModel):
    model_config = ConfigDict(frozen=True)

    score: int
    pros: list[str] = Field(default_factory=list)
    cons: list[str] = Field(default_factory=list)

    @field_validator("score", mode="before")
    @classmethod
    def _round_score(cls, value: Any) -> Any:
        if isinstance(value, float):
            return round(value)
        return value

    @field_validator("pros", "cons", mode="before")
    @classmethod
    def _dedupe(cls, value: Any) -> Any:
        return _as_unique_strings(value)


class InterviewStartRequest(BaseModel):
    session_id: str = Field(min_length=1, max_length=200)
    role_title: str = Field(default="", max_length=200)


class InterviewResponseRequest(BaseModel):
    session_id: str = Field(min_length=1, max_length=200)
    text: str = Field(default="", max_length=20000)


class InterviewSnapshot(BaseModel):
    session_id: str
    state: InterviewStateName
    role_title: str
    turns: list[InterviewTurn] = Field(default_factory=list)
    terminated: bool
    feedback: Feedback | None = None
    candidate_turns: int
