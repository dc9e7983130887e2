from __future__ import annotations

from datetime import UTC, date, datetime
from typing import Any

import pytest

from harvest_fakes import (
    FakeClock,
    FakeHttpError,
    FakeYouTubeClient,
    detail_item,
    quota_error,
    search_response,
)
from video_harvest.services.errors import SearchFailedError
from video_harvest.services.page_fetcher import PageFetcher
from video_harvest.services.quota_governor import QuotaGovernor
from video_harvest.services.records import SearchOptions
from video_harvest.services.search_orchestrator import SearchOrchestrator, resolve_search_range

NOW = datetime(2024, 7, 10, 20, 0, tzinfo=UTC)
# Three 10-day windows starting 2024-01-01, 2024-01-11 and 2024-01-21.
THREE_WINDOWS = SearchOptions(start_date=date(2024, 1, 1), end_date=date(2024, 1, 31))
WINDOW_STARTS = ("2024-01-01T00:00:00Z", "2024-01-11T00:00:00Z", "2024-01-21T00:00:00Z")


class _ScriptedSearch:
    """Search handler serving per-window page lists, chained with tokens "p1", "p2", ..."""

    def __init__(self, pages_by_window: dict[str, list[list[str]]]) -> None:
        self.pages_by_window = pages_by_window
        self.failures: dict[tuple[str, str | None], list[Exception]] = {}

    def fail(self, window_start: str, token: str | None, *errors: Exception) -> None:
        self.failures[(window_start, token)] = list(errors)

    def details(self) -> dict[str, dict[str, Any]]:
        return {
            video_id: detail_item(video_id)
            for pages in self.pages_by_window.values()
            for page in pages
            for video_id in page
        }

    def __call__(self, kwargs: dict[str, Any]) -> dict[str, Any]:
        window_start = str(kwargs["publishedAfter"])
        token = kwargs.get("pageToken")
        pending = self.failures.get((window_start, token))
        if pending:
            raise pending.pop(0)
        pages = self.pages_by_window.get(window_start, [[]])
        index = 0 if token is None else int(str(token)[1:])
        next_token = f"p{index + 1}" if index + 1 < len(pages) else None
        return search_response(pages[index], next_page_token=next_token)


def _orchestrator(script: _ScriptedSearch) -> tuple[SearchOrchestrator, FakeYouTubeClient]:
    clock = FakeClock(NOW)
    client = FakeYouTubeClient(search_handler=script, details=script.details())
    governor = QuotaGovernor(clock=clock, sleep=clock.sleep)
    orchestrator = SearchOrchestrator(PageFetcher(client, governor), chunk_days=10, clock=clock)
    return orchestrator, client


def _ids(videos: list[Any]) -> list[str]:
    return [video.video_id for video in videos]


def test_results_concatenate_oldest_window_first() -> None:
    script = _ScriptedSearch(
        {
            WINDOW_STARTS[0]: [["a1", "a2"], ["a3"]],
            WINDOW_STARTS[1]: [["b1"]],
            WINDOW_STARTS[2]: [["c1", "c2"]],
        }
    )
    orchestrator, client = _orchestrator(script)

    result = orchestrator.search_with_metadata("lupus symptoms", THREE_WINDOWS)

    assert _ids(result.videos) == ["a1", "a2", "a3", "b1", "c1", "c2"]
    assert result.windows_planned == 3
    assert result.windows_processed == 3
    assert result.windows_failed == 0
    assert [call["publishedAfter"] for call in client.calls_to("search")] == [
        WINDOW_STARTS[0],
        WINDOW_STARTS[0],
        WINDOW_STARTS[1],
        WINDOW_STARTS[2],
    ]
    assert client.calls_to("search")[-1]["publishedBefore"] == "2024-01-31T00:00:00Z"


def test_max_results_caps_after_dedup_across_windows() -> None:
    script = _ScriptedSearch(
        {start: [[f"w{index}-{item}" for item in range(7)]] for index, start in enumerate(WINDOW_STARTS)}
    )
    orchestrator, client = _orchestrator(script)

    result = orchestrator.search_with_metadata(
        "q",
        SearchOptions(max_results=10, start_date=date(2024, 1, 1), end_date=date(2024, 1, 31)),
    )

    assert len(result.videos) == 10
    assert _ids(result.videos)[:7] == [f"w0-{item}" for item in range(7)]
    assert result.truncated == 4
    # The cap is reached inside the second window, so the third is never requested.
    assert WINDOW_STARTS[2] not in [call["publishedAfter"] for call in client.calls_to("search")]


def test_duplicates_across_windows_are_removed() -> None:
    script = _ScriptedSearch(
        {
            WINDOW_STARTS[0]: [["A", "B"]],
            WINDOW_STARTS[1]: [["A", "C"]],
        }
    )
    orchestrator, _client = _orchestrator(script)

    result = orchestrator.search_with_metadata("q", THREE_WINDOWS)

    assert _ids(result.videos) == ["A", "B", "C"]
    assert result.duplicates_removed == 1


def test_quota_error_is_transparent() -> None:
    pages = {WINDOW_STARTS[0]: [["a1", "a2"], ["a3"]], WINDOW_STARTS[1]: [["b1"]]}
    baseline_orchestrator, _ = _orchestrator(_ScriptedSearch(pages))
    baseline = baseline_orchestrator.search("q", THREE_WINDOWS)

    script = _ScriptedSearch(pages)
    script.fail(WINDOW_STARTS[0], "p1", quota_error())
    orchestrator, client = _orchestrator(script)

    result = orchestrator.search("q", THREE_WINDOWS)

    assert _ids(result) == _ids(baseline) == ["a1", "a2", "a3", "b1"]
    tokens = [
        call.get("pageToken")
        for call in client.calls_to("search")
        if call["publishedAfter"] == WINDOW_STARTS[0]
    ]
    assert tokens == [None, "p1", "p1"]


def test_transient_failure_mid_window_keeps_earlier_pages() -> None:
    script = _ScriptedSearch(
        {
            WINDOW_STARTS[0]: [["a1"], ["a2"], ["a3"], ["a4"], ["a5"]],
            WINDOW_STARTS[1]: [["b1"]],
        }
    )
    script.fail(WINDOW_STARTS[0], "p2", FakeHttpError(500, "backendError"))
    orchestrator, _client = _orchestrator(script)

    result = orchestrator.search_with_metadata("q", THREE_WINDOWS)

    assert _ids(result.videos) == ["a1", "a2", "b1"]
    assert result.windows_failed == 1
    assert result.windows_processed == 3
    assert "2024-01-01..2024-01-11" in result.failures[0]


def test_failure_on_first_request_raises_search_failed() -> None:
    script = _ScriptedSearch({WINDOW_STARTS[0]: [["a1"]]})
    script.fail(WINDOW_STARTS[0], None, FakeHttpError(503, None))
    orchestrator, _client = _orchestrator(script)

    with pytest.raises(SearchFailedError, match="first request"):
        orchestrator.search("q", THREE_WINDOWS)


def test_later_window_failing_on_first_page_is_tolerated() -> None:
    script = _ScriptedSearch({WINDOW_STARTS[0]: [["a1"]], WINDOW_STARTS[2]: [["c1"]]})
    script.fail(WINDOW_STARTS[1], None, FakeHttpError(503, None))
    orchestrator, _client = _orchestrator(script)

    result = orchestrator.search_with_metadata("q", THREE_WINDOWS)

    assert _ids(result.videos) == ["a1", "c1"]
    assert result.windows_failed == 1


def test_permanent_error_aborts_search() -> None:
    script = _ScriptedSearch({WINDOW_STARTS[0]: [["a1"]]})
    script.fail(WINDOW_STARTS[1], None, FakeHttpError(403, "forbidden"))
    orchestrator, client = _orchestrator(script)

    with pytest.raises(SearchFailedError):
        orchestrator.search("q", THREE_WINDOWS)
    assert WINDOW_STARTS[2] not in [call["publishedAfter"] for call in client.calls_to("search")]


def test_search_name_is_attached() -> None:
    script = _ScriptedSearch({WINDOW_STARTS[0]: [["a1", "a2"]]})
    orchestrator, _client = _orchestrator(script)

    videos = orchestrator.search("lupus symptoms", THREE_WINDOWS, search_name="lupus")

    assert {video.search_name for video in videos} == {"lupus"}


def test_empty_range_returns_nothing_without_requests() -> None:
    orchestrator, client = _orchestrator(_ScriptedSearch({}))

    result = orchestrator.search_with_metadata(
        "q",
        SearchOptions(start_date=date(2024, 2, 1), end_date=date(2024, 1, 1)),
    )

    assert result.videos == []
    assert result.windows_planned == 0
    assert client.calls == []


def test_default_range_reaches_back_five_years_from_now() -> None:
    orchestrator, client = _orchestrator(_ScriptedSearch({}))

    orchestrator.search("q")

    first_call = client.calls_to("search")[0]
    assert first_call["publishedAfter"] == "2019-07-10T20:00:00Z"
    assert first_call["order"] == "relevance"
    assert first_call["relevanceLanguage"] == "en"


def test_blank_query_is_rejected() -> None:
    orchestrator, _client = _orchestrator(_ScriptedSearch({}))

    with pytest.raises(ValueError):
        orchestrator.search("   ")


def test_resolve_search_range_uses_midnight_utc_for_dates() -> None:
    start, end = resolve_search_range(
        SearchOptions(start_date=date(2023, 5, 1), end_date=date(2023, 6, 1)),
        NOW,
    )

    assert start == datetime(2023, 5, 1, tzinfo=UTC)
    assert end == datetime(2023, 6, 1, tzinfo=UTC)


def test_resolve_search_range_handles_leap_day() -> None:
    start, end = resolve_search_range(
        SearchOptions(end_date=date(2024, 2, 29), years_back=1),
        NOW,
    )

    assert end == datetime(2024, 2, 29, tzinfo=UTC)
    assert start == datetime(2023, 2, 28, tzinfo=UTC)


def test_search_options_validation() -> None:
    with pytest.raises(ValueError):
        SearchOptions(max_results=0)
    with pytest.raises(ValueError):
        SearchOptions(order="popularity")
    with pytest.raises(ValueError):
        SearchOptions(years_back=-1)


def test_ids_without_details_are_counted_in_summary() -> None:
    script = _ScriptedSearch({WINDOW_STARTS[0]: [["a1", "gone"]], WINDOW_STARTS[1]: [["b1"]]})
    details = script.details()
    del details["gone"]
    clock = FakeClock(NOW)
    client = FakeYouTubeClient(search_handler=script, details=details)
    governor = QuotaGovernor(clock=clock, sleep=clock.sleep)
    orchestrator = SearchOrchestrator(PageFetcher(client, governor), chunk_days=10, clock=clock)

    result = orchestrator.search_with_metadata("q", THREE_WINDOWS)

    assert _ids(result.videos) == ["a1", "b1"]
    assert result.dropped_without_details == 1
