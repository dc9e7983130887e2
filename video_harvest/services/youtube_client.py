from __future__ import annotations

import json
import logging
import re
from datetime import UTC, datetime
from importlib import import_module
from typing import Any, cast

from video_harvest.services.errors import (
    ProviderPermanentError,
    ProviderTransientError,
    YouTubeQuotaExceededError,
    YouTubeServiceError,
)
from video_harvest.services.records import (
    YOUTUBE_WATCH_URL_TEMPLATE,
    SearchWindow,
    VideoRecord,
    parse_instant,
)

LOGGER = logging.getLogger("video_harvest.youtube")

MAX_PAGE_SIZE = 50
DETAILS_BATCH_SIZE = 50
SEARCH_LIST_UNITS = 100
VIDEOS_LIST_UNITS = 1
DETAILS_PARTS = "snippet,contentDetails,statistics"
# Public Google Developers channel, used only to prove the key is accepted.
API_KEY_PROBE_CHANNEL_ID = "UC_x5XG1OV2P6uZZ5FSM9Ttw"
THUMBNAIL_QUALITY_PREFERENCE: tuple[str, ...] = ("high", "medium", "standard", "default", "maxres")

QUOTA_EXCEEDED_REASONS: frozenset[str] = frozenset({"quotaexceeded", "dailylimitexceeded"})
RATE_LIMIT_REASONS: frozenset[str] = frozenset(
    {"ratelimitexceeded", "userratelimitexceeded"}
)
PERMANENT_HTTP_STATUSES: frozenset[int] = frozenset({400, 401, 403})
ISO8601_DURATION_PATTERN = re.compile(
    r"^P(?:(?P<days>\d+)D)?(?:T(?:(?P<hours>\d+)H)?(?:(?P<minutes>\d+)M)?(?:(?P<seconds>\d+)S)?)?$"
)


def build_youtube_client(api_key: str) -> Any:
    normalized_key = api_key.strip()
    if not normalized_key:
        raise ProviderPermanentError("YouTube Data API key is missing.")
    try:
        discovery_module = import_module("googleapiclient.discovery")
    except ImportError as exc:  # pragma: no cover - dependency controlled at runtime
        raise YouTubeServiceError(
            "YouTube search requires the google-api-python-client dependency"
        ) from exc

    build_fn: Any = discovery_module.build
    return build_fn("youtube", "v3", developerKey=normalized_key, cache_discovery=False)


def validate_api_key(client: Any) -> bool:
    try:
        response = _execute(
            client.channels().list(part="snippet", id=API_KEY_PROBE_CHANNEL_ID, maxResults=1)
        )
    except YouTubeServiceError as exc:
        LOGGER.warning("youtube api_key validation_failed error=%s", exc)
        return False
    return bool(_as_list(response.get("items")))


def list_search_page_ids(
    client: Any,
    *,
    query: str,
    window: SearchWindow,
    page_size: int,
    page_token: str | None,
    order: str,
    language: str,
    region_code: str,
) -> tuple[list[str], str | None]:
    query_kwargs: dict[str, object] = {
        "part": "id",
        "q": query,
        "type": "video",
        "maxResults": max(1, min(MAX_PAGE_SIZE, page_size)),
        "order": order,
        "regionCode": region_code,
        "relevanceLanguage": language,
        "publishedAfter": format_rfc3339(window.start),
        "publishedBefore": format_rfc3339(window.end),
        "videoDuration": "any",
    }
    if page_token is not None:
        query_kwargs["pageToken"] = page_token

    response = _execute(client.search().list(**query_kwargs))

    video_ids: list[str] = []
    for item in _as_list(response.get("items")):
        identifier = _as_dict(_as_dict(item).get("id"))
        video_id = identifier.get("videoId")
        if isinstance(video_id, str) and video_id.strip():
            video_ids.append(video_id.strip())

    raw_next = response.get("nextPageToken")
    next_page_token = raw_next if isinstance(raw_next, str) and raw_next.strip() else None
    return video_ids, next_page_token


def fetch_video_details(
    client: Any,
    video_ids: list[str],
) -> tuple[dict[str, VideoRecord], int]:
    """Look up detail records in batches of at most 50 ids, split before each call."""
    unique_ids = list(dict.fromkeys(video_ids))
    records_by_id: dict[str, VideoRecord] = {}
    details_calls = 0

    for index in range(0, len(unique_ids), DETAILS_BATCH_SIZE):
        chunk = unique_ids[index : index + DETAILS_BATCH_SIZE]
        response = _execute(
            client.videos().list(
                part=DETAILS_PARTS,
                id=",".join(chunk),
                maxResults=len(chunk),
            )
        )
        details_calls += 1

        for item in _as_list(response.get("items")):
            record = video_record_from_details(_as_dict(item))
            if record is not None:
                records_by_id[record.video_id] = record

    return records_by_id, details_calls


def video_record_from_details(item: dict[str, Any]) -> VideoRecord | None:
    raw_video_id = item.get("id")
    if not isinstance(raw_video_id, str) or not raw_video_id.strip():
        return None
    video_id = raw_video_id.strip()

    snippet = _as_dict(item.get("snippet"))
    content_details = _as_dict(item.get("contentDetails"))
    statistics = _as_dict(item.get("statistics"))

    title = snippet.get("title")
    description = snippet.get("description")
    channel_title = snippet.get("channelTitle")
    view_count = _coerce_int(statistics.get("viewCount"))

    return VideoRecord(
        video_id=video_id,
        title=title if isinstance(title, str) else "",
        description=description if isinstance(description, str) else "",
        published_at=parse_instant(snippet.get("publishedAt")),
        duration_seconds=parse_iso8601_duration_seconds(content_details.get("duration")),
        view_count=max(0, view_count) if view_count is not None else 0,
        url=YOUTUBE_WATCH_URL_TEMPLATE.format(video_id=video_id),
        thumbnail_url=_select_thumbnail_url(snippet),
        channel_name=channel_title if isinstance(channel_title, str) else "",
    )


def parse_iso8601_duration_seconds(raw_value: object) -> int:
    """Return total seconds for a `P[nD]T[nH][nM][nS]` duration; anything else is 0."""
    if not isinstance(raw_value, str):
        return 0
    matched = ISO8601_DURATION_PATTERN.match(raw_value.strip())
    if matched is None:
        return 0

    days = int(matched.group("days") or 0)
    hours = int(matched.group("hours") or 0)
    minutes = int(matched.group("minutes") or 0)
    seconds = int(matched.group("seconds") or 0)
    return days * 86_400 + hours * 3_600 + minutes * 60 + seconds


def format_rfc3339(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


def classify_provider_error(exc: Exception) -> YouTubeServiceError:
    if isinstance(exc, YouTubeServiceError):
        return exc

    status = _extract_http_status(exc)
    reasons = _extract_error_reasons(exc)
    summary = _summarize_exception_message(exc)

    quota_reasons = reasons & QUOTA_EXCEEDED_REASONS
    if status == 403 and quota_reasons:
        return YouTubeQuotaExceededError(
            f"YouTube Data API quota exceeded: {summary}",
            retry_after_seconds=_extract_retry_after_seconds_from_error(exc),
            reason=sorted(quota_reasons)[0],
        )
    if status == 403 and reasons & RATE_LIMIT_REASONS:
        return ProviderTransientError(f"YouTube Data API rate limited the request: {summary}")
    if status in PERMANENT_HTTP_STATUSES:
        return ProviderPermanentError(
            f"YouTube Data API rejected the request (status {status}): {summary}",
            status_code=status,
        )
    if status is not None:
        return ProviderTransientError(f"YouTube Data API request failed (status {status}): {summary}")
    return ProviderTransientError(f"YouTube Data API request failed: {summary}")


def _execute(request: Any) -> dict[str, Any]:
    try:
        raw_response = request.execute()
    except Exception as exc:
        raise classify_provider_error(exc) from exc

    if not isinstance(raw_response, dict):
        raise ProviderTransientError(
            f"YouTube Data API returned a malformed response of type {type(raw_response).__name__}."
        )
    return _as_dict(raw_response)


def _extract_http_status(exc: Exception) -> int | None:
    status_code = getattr(exc, "status_code", None)
    if isinstance(status_code, int):
        return status_code

    response = getattr(exc, "resp", None)
    raw_status = getattr(response, "status", None)
    if isinstance(raw_status, int):
        return raw_status
    if isinstance(raw_status, str):
        try:
            return int(raw_status)
        except ValueError:
            return None
    return None


def _extract_error_reasons(exc: Exception) -> set[str]:
    reasons: set[str] = set()

    details = getattr(exc, "error_details", None)
    if isinstance(details, list):
        for detail in cast(list[Any], details):
            reason = _as_dict(detail).get("reason")
            if isinstance(reason, str) and reason.strip():
                reasons.add(reason.strip().lower())

    content = getattr(exc, "content", None)
    if isinstance(content, bytes):
        content = content.decode("utf-8", errors="replace")
    if isinstance(content, str) and content.strip():
        try:
            parsed = json.loads(content)
        except json.JSONDecodeError:
            parsed = None
        error_payload = _as_dict(_as_dict(parsed).get("error"))
        for item in _as_list(error_payload.get("errors")):
            reason = _as_dict(item).get("reason")
            if isinstance(reason, str) and reason.strip():
                reasons.add(reason.strip().lower())

    return reasons


def _extract_retry_after_seconds_from_error(exc: Exception) -> int | None:
    response = getattr(exc, "resp", None)
    if response is not None:
        retry_after_raw = None
        headers = getattr(response, "headers", response)
        if hasattr(headers, "get"):
            retry_after_raw = headers.get("retry-after") or headers.get("Retry-After")
        if isinstance(retry_after_raw, str):
            stripped = retry_after_raw.strip()
            if stripped.isdigit():
                return int(stripped)
            parsed = _parse_retry_after_duration_seconds(stripped)
            if parsed is not None:
                return parsed

    return _parse_retry_after_duration_seconds(str(exc))


def _parse_retry_after_duration_seconds(raw_value: str) -> int | None:
    normalized = raw_value.lower()
    match = re.search(
        r"retry(?:\s+after)?\s+(\d+)(?:\s*(seconds?|secs?|s|minutes?|mins?|m|hours?|hrs?|h))?",
        normalized,
    )
    if match is None:
        return None
    amount = int(match.group(1))
    unit = match.group(2) or "s"
    if unit.startswith("h"):
        return amount * 3600
    if unit.startswith("m"):
        return amount * 60
    return amount


def _summarize_exception_message(exc: Exception, *, max_length: int = 400) -> str:
    raw = str(exc).strip()
    if not raw:
        raw = repr(exc)
    if len(raw) <= max_length:
        return raw
    return f"{raw[: max_length - 3]}..."


def _select_thumbnail_url(snippet: dict[str, Any]) -> str:
    thumbnails = _as_dict(snippet.get("thumbnails"))
    for quality in THUMBNAIL_QUALITY_PREFERENCE:
        url_value = _as_dict(thumbnails.get(quality)).get("url")
        if isinstance(url_value, str) and url_value.strip():
            return url_value
    return ""


def _coerce_int(raw_value: object) -> int | None:
    if isinstance(raw_value, bool):
        return int(raw_value)
    if isinstance(raw_value, int):
        return raw_value
    if isinstance(raw_value, float):
        return int(raw_value)
    if isinstance(raw_value, str):
        try:
            return int(raw_value)
        except ValueError:
            return None
    return None


def _as_dict(value: Any) -> dict[str, Any]:
    if isinstance(value, dict):
        raw_dict = cast(dict[object, object], value)
        converted: dict[str, Any] = {}
        for key, item in raw_dict.items():
            if isinstance(key, str):
                converted[key] = item
        return converted
    return {}


def _as_list(value: Any) -> list[Any]:
    if isinstance(value, list):
        raw_list = cast(list[Any], value)
        return list(raw_list)
    return []
