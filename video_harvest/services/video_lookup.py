from __future__ import annotations

import logging
from typing import Any

from video_harvest.services.errors import ProviderTransientError, YouTubeQuotaExceededError
from video_harvest.services.quota_governor import QuotaGovernor
from video_harvest.services.records import VideoRecord
from video_harvest.services.youtube_client import VIDEOS_LIST_UNITS, fetch_video_details

LOGGER = logging.getLogger("video_harvest.youtube")


class VideoLookup:
    """Direct detail lookup by id, bypassing search."""

    def __init__(self, client: Any, governor: QuotaGovernor) -> None:
        self._client = client
        self._governor = governor

    def lookup(self, video_id: str, *, search_name: str | None = None) -> VideoRecord | None:
        normalized_id = video_id.strip()
        if not normalized_id:
            return None

        while True:
            self._governor.await_if_suspended()
            try:
                records_by_id, details_calls = fetch_video_details(self._client, [normalized_id])
            except YouTubeQuotaExceededError as exc:
                LOGGER.warning(
                    "youtube lookup quota_exceeded video_id=%s reason=%s",
                    normalized_id,
                    exc.reason,
                )
                self._governor.trip(retry_after_seconds=exc.retry_after_seconds)
                continue
            except ProviderTransientError as exc:
                LOGGER.warning("youtube lookup failed video_id=%s error=%s", normalized_id, exc)
                return None
            break

        self._governor.record_usage("videos.list", VIDEOS_LIST_UNITS * details_calls)
        record = records_by_id.get(normalized_id)
        if record is None:
            LOGGER.info("youtube lookup not_found video_id=%s", normalized_id)
            return None
        return record.with_search_name(search_name) if search_name is not None else record
