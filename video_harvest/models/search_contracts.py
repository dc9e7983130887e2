from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

PATIENT_STORY_VIDEO_TYPE = "patient story"
KOL_INTERVIEW_VIDEO_TYPE = "KOL interview"


def _normalize_text(value: object) -> str:
    if not isinstance(value, str):
        return ""
    return " ".join(value.split())


class SearchSummaryRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    disease: str = Field(default="", max_length=200)
    keywords: str | None = Field(default=None, max_length=500)

    @field_validator("disease", mode="before")
    @classmethod
    def _normalize_disease(cls, value: object) -> str:
        return _normalize_text(value)

    @field_validator("keywords", mode="before")
    @classmethod
    def _normalize_keywords(cls, value: object) -> str | None:
        normalized = _normalize_text(value)
        return normalized or None

    @property
    def search_name(self) -> str:
        return f"{self.disease} {self.keywords or ''}".strip()


class SearchSummaryResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    search_name: str
    video_count: int
    transcript_count: int
    analysis_count: int
    patient_stories_count: int
    kol_interviews_count: int
    llm_model: str
    last_updated: datetime
