from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import UTC, date, datetime, timedelta
from typing import Any, cast

YOUTUBE_WATCH_URL_TEMPLATE = "https://www.youtube.com/watch?v={video_id}"
SEARCH_ORDERS: frozenset[str] = frozenset(
    {"date", "rating", "relevance", "title", "videoCount", "viewCount"}
)
DEFAULT_SEARCH_ORDER = "relevance"
DEFAULT_YEARS_BACK = 5


@dataclass(frozen=True)
class VideoRecord:
    video_id: str
    title: str
    description: str = ""
    published_at: datetime | None = None
    duration_seconds: int = 0
    view_count: int = 0
    url: str = ""
    thumbnail_url: str = ""
    channel_name: str = ""
    search_name: str | None = None

    def with_search_name(self, search_name: str | None) -> VideoRecord:
        return replace(self, search_name=search_name)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.video_id,
            "title": self.title,
            "description": self.description,
            "published_at": _format_instant(self.published_at),
            "duration_seconds": self.duration_seconds,
            "view_count": self.view_count,
            "url": self.url,
            "thumbnail_url": self.thumbnail_url,
            "channel_name": self.channel_name,
            "search_name": self.search_name,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> VideoRecord | None:
        video_id = _first_text(payload, "id", "video_id", "videoId")
        if video_id is None:
            return None
        return cls(
            video_id=video_id,
            title=_first_text(payload, "title") or "",
            description=_first_text(payload, "description") or "",
            published_at=parse_instant(payload.get("published_at", payload.get("publishedDate"))),
            duration_seconds=_non_negative_int(
                payload.get("duration_seconds", payload.get("durationInSeconds"))
            ),
            view_count=_non_negative_int(payload.get("view_count", payload.get("viewCount"))),
            url=_first_text(payload, "url") or YOUTUBE_WATCH_URL_TEMPLATE.format(video_id=video_id),
            thumbnail_url=_first_text(payload, "thumbnail_url", "thumbnail") or "",
            channel_name=_first_text(payload, "channel_name", "channelName") or "",
            search_name=_first_text(payload, "search_name", "searchName"),
        )


@dataclass(frozen=True)
class SearchWindow:
    """Half-open publication window `[start, end)` used for one chunked search."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start >= self.end:
            raise ValueError(
                f"Search window start must precede end (start={self.start} end={self.end})."
            )

    @property
    def span(self) -> timedelta:
        return self.end - self.start


@dataclass(frozen=True)
class SearchOptions:
    max_results: int | None = None
    start_date: date | datetime | None = None
    end_date: date | datetime | None = None
    years_back: int = DEFAULT_YEARS_BACK
    order: str = DEFAULT_SEARCH_ORDER
    language: str | None = None

    def __post_init__(self) -> None:
        if self.max_results is not None and self.max_results < 1:
            raise ValueError("max_results must be a positive integer when set.")
        if self.years_back < 0:
            raise ValueError("years_back must not be negative.")
        if self.order not in SEARCH_ORDERS:
            allowed = ", ".join(sorted(SEARCH_ORDERS))
            raise ValueError(f"Unsupported search order {self.order!r}. Expected one of: {allowed}.")


@dataclass(frozen=True)
class TranscriptRecord:
    video_id: str
    transcript: str
    language: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "video_id": self.video_id,
            "transcript": self.transcript,
            "language": self.language,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> TranscriptRecord | None:
        video_id = _first_text(payload, "video_id", "videoId", "id")
        transcript = payload.get("transcript")
        if video_id is None or not isinstance(transcript, str):
            return None
        return cls(
            video_id=video_id,
            transcript=transcript,
            language=_first_text(payload, "language") or "unknown",
        )


@dataclass(frozen=True)
class AnalysisRecord:
    """
    Structured reading of one transcript.

    Every field is independently optional: `None` means the model did not supply
    a usable value, never that the value was falsy.
    """

    video_id: str
    video_type: str | None = None
    name: str | None = None
    age: str | None = None
    sex: str | None = None
    location: str | None = None
    symptoms: tuple[str, ...] | None = None
    medical_history_of_patient: dict[str, Any] | None = None
    family_medical_history: dict[str, Any] | None = None
    challenges_faced_during_diagnosis: tuple[str, ...] | None = None
    key_opinion: str | None = None

    @classmethod
    def from_model_payload(cls, video_id: str, payload: dict[str, Any]) -> AnalysisRecord:
        return cls(
            video_id=video_id,
            video_type=_optional_text(payload, "video_type", "videoType"),
            name=_optional_text(payload, "name"),
            age=_optional_text(payload, "age"),
            sex=_optional_text(payload, "sex"),
            location=_optional_text(payload, "location"),
            symptoms=_optional_text_list(payload, "symptoms"),
            medical_history_of_patient=_optional_mapping(
                payload, "medical_history_of_patient", "medicalHistoryOfPatient"
            ),
            family_medical_history=_optional_mapping(
                payload, "family_medical_history", "familyMedicalHistory"
            ),
            challenges_faced_during_diagnosis=_optional_text_list(
                payload,
                "challenges_faced_during_diagnosis",
                "challengesFacedDuringDiagnosis",
            ),
            key_opinion=_optional_text(payload, "key_opinion", "keyOpinion"),
        )

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> AnalysisRecord | None:
        video_id = _first_text(payload, "video_id", "videoId", "id")
        if video_id is None:
            return None
        return cls.from_model_payload(video_id, payload)

    def to_dict(self) -> dict[str, Any]:
        return {
            "video_id": self.video_id,
            "video_type": self.video_type,
            "name": self.name,
            "age": self.age,
            "sex": self.sex,
            "location": self.location,
            "symptoms": list(self.symptoms) if self.symptoms is not None else None,
            "medical_history_of_patient": self.medical_history_of_patient,
            "family_medical_history": self.family_medical_history,
            "challenges_faced_during_diagnosis": (
                list(self.challenges_faced_during_diagnosis)
                if self.challenges_faced_during_diagnosis is not None
                else None
            ),
            "key_opinion": self.key_opinion,
        }


def parse_instant(raw_value: object) -> datetime | None:
    if isinstance(raw_value, datetime):
        return as_utc(raw_value)
    if not isinstance(raw_value, str) or not raw_value.strip():
        return None
    normalized = raw_value.strip()
    if normalized.endswith("Z"):
        normalized = f"{normalized[:-1]}+00:00"
    try:
        parsed = datetime.fromisoformat(normalized)
    except ValueError:
        return None
    return as_utc(parsed)


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _format_instant(value: datetime | None) -> str | None:
    if value is None:
        return None
    return as_utc(value).isoformat()


def _first_text(payload: dict[str, Any], *keys: str) -> str | None:
    for key in keys:
        value = payload.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def _non_negative_int(raw_value: object) -> int:
    if isinstance(raw_value, bool):
        return 0
    if isinstance(raw_value, int):
        return max(0, raw_value)
    if isinstance(raw_value, str):
        try:
            return max(0, int(raw_value))
        except ValueError:
            return 0
    return 0


def _optional_text(payload: dict[str, Any], *keys: str) -> str | None:
    for key in keys:
        if key not in payload:
            continue
        value = payload[key]
        if isinstance(value, str):
            return value
        if isinstance(value, int | float) and not isinstance(value, bool):
            return str(value)
        return None
    return None


def _optional_text_list(payload: dict[str, Any], *keys: str) -> tuple[str, ...] | None:
    for key in keys:
        if key not in payload:
            continue
        value = payload[key]
        if not isinstance(value, list):
            return None
        items: list[str] = []
        for item in cast(list[object], value):
            if isinstance(item, str):
                items.append(item)
        return tuple(items)
    return None


def _optional_mapping(payload: dict[str, Any], *keys: str) -> dict[str, Any] | None:
    for key in keys:
        if key not in payload:
            continue
        value = payload[key]
        if not isinstance(value, dict):
            return None
        raw_dict = cast(dict[object, object], value)
        return {str(item_key): item for item_key, item in raw_dict.items()}
    return None
