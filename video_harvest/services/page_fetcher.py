from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from video_harvest.services.errors import (
    ProviderTransientError,
    YouTubeQuotaExceededError,
)
from video_harvest.services.quota_governor import QuotaGovernor
from video_harvest.services.records import DEFAULT_SEARCH_ORDER, SearchWindow, VideoRecord
from video_harvest.services.youtube_client import (
    MAX_PAGE_SIZE,
    SEARCH_LIST_UNITS,
    VIDEOS_LIST_UNITS,
    fetch_video_details,
    list_search_page_ids,
)

LOGGER = logging.getLogger("video_harvest.youtube")

DEFAULT_REGION_CODE = "US"
DEFAULT_LANGUAGE = "en"


@dataclass(frozen=True)
class SearchPage:
    videos: list[VideoRecord]
    next_page_token: str | None
    result_count: int
    dropped_without_details: int = 0


@dataclass
class WindowFetch:
    window: SearchWindow
    videos: list[VideoRecord] = field(default_factory=list)
    pages_fetched: int = 0
    quota_retries: int = 0
    dropped_without_details: int = 0
    error: ProviderTransientError | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None

    @property
    def failed_before_first_page(self) -> bool:
        return self.error is not None and self.pages_fetched == 0


class PageFetcher:
    def __init__(
        self,
        client: Any,
        governor: QuotaGovernor,
        *,
        page_size: int = MAX_PAGE_SIZE,
        region_code: str = DEFAULT_REGION_CODE,
        default_language: str = DEFAULT_LANGUAGE,
    ) -> None:
        self._client = client
        self._governor = governor
        self._page_size = max(1, min(MAX_PAGE_SIZE, page_size))
        self._region_code = region_code
        self._default_language = default_language

    @property
    def governor(self) -> QuotaGovernor:
        return self._governor

    def fetch_page(
        self,
        query: str,
        window: SearchWindow,
        *,
        page_token: str | None = None,
        order: str = DEFAULT_SEARCH_ORDER,
        language: str | None = None,
    ) -> SearchPage:
        video_ids, next_page_token = list_search_page_ids(
            self._client,
            query=query,
            window=window,
            page_size=self._page_size,
            page_token=page_token,
            order=order,
            language=language or self._default_language,
            region_code=self._region_code,
        )
        self._governor.record_usage("search.list", SEARCH_LIST_UNITS)
        if not video_ids:
            return SearchPage(videos=[], next_page_token=next_page_token, result_count=0)

        records_by_id, details_calls = fetch_video_details(self._client, video_ids)
        if details_calls:
            self._governor.record_usage("videos.list", VIDEOS_LIST_UNITS * details_calls)

        videos = [records_by_id[video_id] for video_id in video_ids if video_id in records_by_id]
        missing = len(set(video_ids)) - len(records_by_id)
        if missing > 0:
            LOGGER.debug(
                "youtube search page dropped_without_details=%s window_start=%s",
                missing,
                window.start.isoformat(),
            )
        return SearchPage(
            videos=videos,
            next_page_token=next_page_token,
            result_count=len(video_ids),
            dropped_without_details=max(0, missing),
        )

    def fetch_window(
        self,
        query: str,
        window: SearchWindow,
        *,
        order: str = DEFAULT_SEARCH_ORDER,
        language: str | None = None,
        limit: int | None = None,
    ) -> WindowFetch:
        """
        Exhaust the pages of one window.

        Quota exhaustion suspends through the governor and re-requests the same
        page token. A transient failure ends the window and keeps the pages
        already collected. Permanent failures propagate.
        """
        result = WindowFetch(window=window)
        page_token: str | None = None

        while True:
            self._governor.await_if_suspended()
            try:
                page = self.fetch_page(
                    query,
                    window,
                    page_token=page_token,
                    order=order,
                    language=language,
                )
            except YouTubeQuotaExceededError as exc:
                result.quota_retries += 1
                LOGGER.warning(
                    "youtube search quota_exceeded window_start=%s page=%s reason=%s",
                    window.start.isoformat(),
                    result.pages_fetched + 1,
                    exc.reason,
                )
                self._governor.trip(retry_after_seconds=exc.retry_after_seconds)
                continue
            except ProviderTransientError as exc:
                result.error = exc
                LOGGER.warning(
                    "youtube search window_abandoned window_start=%s window_end=%s "
                    "pages_fetched=%s kept=%s error=%s",
                    window.start.isoformat(),
                    window.end.isoformat(),
                    result.pages_fetched,
                    len(result.videos),
                    exc,
                )
                return result

            result.pages_fetched += 1
            if page.result_count == 0:
                break
            result.videos.extend(page.videos)
            result.dropped_without_details += page.dropped_without_details
            if limit is not None and len(result.videos) >= limit:
                break
            if page.next_page_token is None:
                break
            page_token = page.next_page_token

        LOGGER.info(
            "youtube search window_done window_start=%s window_end=%s pages=%s videos=%s "
            "dropped_without_details=%s",
            window.start.isoformat(),
            window.end.isoformat(),
            result.pages_fetched,
            len(result.videos),
            result.dropped_without_details,
        )
        return result
