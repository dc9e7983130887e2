from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, time

from video_harvest.services.dedup import dedupe_videos
from video_harvest.services.errors import ProviderPermanentError, SearchFailedError
from video_harvest.services.page_fetcher import PageFetcher
from video_harvest.services.records import SearchOptions, VideoRecord, as_utc
from video_harvest.services.window_chunker import DEFAULT_CHUNK_DAYS, WindowChunker

LOGGER = logging.getLogger("video_harvest.search")


@dataclass(frozen=True)
class SearchResult:
    query: str
    start: datetime
    end: datetime
    videos: list[VideoRecord]
    windows_planned: int
    windows_processed: int
    windows_failed: int
    duplicates_removed: int
    truncated: int
    failures: list[str] = field(default_factory=list)
    dropped_without_details: int = 0


def resolve_search_range(options: SearchOptions, now: datetime) -> tuple[datetime, datetime]:
    end = _as_instant(options.end_date) if options.end_date is not None else as_utc(now)
    if options.start_date is not None:
        start = _as_instant(options.start_date)
    else:
        start = _subtract_years(end, options.years_back)
    return start, end


def _as_instant(value: date | datetime) -> datetime:
    if isinstance(value, datetime):
        return as_utc(value)
    return datetime.combine(value, time.min, tzinfo=UTC)


def _subtract_years(value: datetime, years: int) -> datetime:
    try:
        return value.replace(year=value.year - years)
    except ValueError:
        # 29 February in a non-leap target year.
        return value.replace(year=value.year - years, day=28)


def _utc_now() -> datetime:
    return datetime.now(UTC)


class SearchOrchestrator:
    """
    Runs one search session over a date range.

    The range is split into windows; each window is paginated to exhaustion (or
    to the remaining cap), results are concatenated oldest window first, then
    deduplicated and truncated to `max_results`.
    """

    def __init__(
        self,
        page_fetcher: PageFetcher,
        *,
        chunk_days: int = DEFAULT_CHUNK_DAYS,
        default_language: str = "en",
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if chunk_days < 1:
            raise ValueError("chunk_days must be at least 1.")
        self._page_fetcher = page_fetcher
        self._chunk_days = chunk_days
        self._default_language = default_language
        self._clock = clock or _utc_now

    def search(
        self,
        query: str,
        options: SearchOptions | None = None,
        *,
        search_name: str | None = None,
    ) -> list[VideoRecord]:
        return self.search_with_metadata(query, options, search_name=search_name).videos

    def search_with_metadata(
        self,
        query: str,
        options: SearchOptions | None = None,
        *,
        search_name: str | None = None,
    ) -> SearchResult:
        normalized_query = query.strip()
        if not normalized_query:
            raise ValueError("Search query must not be empty.")
        resolved_options = options or SearchOptions()
        start, end = resolve_search_range(resolved_options, self._clock())
        windows = WindowChunker(start, end, chunk_days=self._chunk_days)
        max_results = resolved_options.max_results
        language = resolved_options.language or self._default_language

        LOGGER.info(
            "youtube search start query=%s start=%s end=%s windows=%s max_results=%s order=%s",
            normalized_query,
            start.isoformat(),
            end.isoformat(),
            len(windows),
            max_results,
            resolved_options.order,
        )

        accumulated: list[VideoRecord] = []
        windows_processed = 0
        dropped_without_details = 0
        failures: list[str] = []

        for window_index, window in enumerate(windows):
            remaining = max_results - len(accumulated) if max_results is not None else None
            try:
                fetched = self._page_fetcher.fetch_window(
                    normalized_query,
                    window,
                    order=resolved_options.order,
                    language=language,
                    limit=remaining,
                )
            except ProviderPermanentError as exc:
                LOGGER.error(
                    "youtube search aborted query=%s window_start=%s status=%s error=%s",
                    normalized_query,
                    window.start.isoformat(),
                    exc.status_code,
                    exc,
                )
                raise SearchFailedError(f"YouTube search failed: {exc}") from exc

            windows_processed += 1
            if fetched.error is not None:
                if window_index == 0 and fetched.failed_before_first_page and not accumulated:
                    raise SearchFailedError(
                        f"YouTube search failed on its first request: {fetched.error}"
                    ) from fetched.error
                failures.append(
                    f"{window.start.date().isoformat()}..{window.end.date().isoformat()}: "
                    f"{fetched.error}"
                )

            accumulated.extend(fetched.videos)
            dropped_without_details += fetched.dropped_without_details
            if max_results is not None and len(accumulated) >= max_results:
                break

        unique = dedupe_videos(accumulated)
        duplicates_removed = len(accumulated) - len(unique)
        truncated = 0
        if max_results is not None and len(unique) > max_results:
            truncated = len(unique) - max_results
            unique = unique[:max_results]
        if search_name is not None:
            unique = [video.with_search_name(search_name) for video in unique]

        if failures:
            LOGGER.warning(
                "youtube search windows_failed=%s query=%s failures=%s",
                len(failures),
                normalized_query,
                "; ".join(failures),
            )
        LOGGER.info(
            "youtube search done query=%s videos=%s windows_processed=%s "
            "duplicates_removed=%s truncated=%s dropped_without_details=%s",
            normalized_query,
            len(unique),
            windows_processed,
            duplicates_removed,
            truncated,
            dropped_without_details,
        )
        return SearchResult(
            query=normalized_query,
            start=start,
            end=end,
            videos=unique,
            windows_planned=len(windows),
            windows_processed=windows_processed,
            windows_failed=len(failures),
            duplicates_removed=duplicates_removed,
            truncated=truncated,
            failures=failures,
            dropped_without_details=dropped_without_details,
        )
