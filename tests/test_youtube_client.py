from __future__ import annotations

import types
from datetime import UTC, datetime

import pytest

from harvest_fakes import (
    FakeHttpError,
    FakeYouTubeClient,
    detail_item,
    quota_error,
    search_response,
)
from video_harvest.services import youtube_client
from video_harvest.services.errors import (
    ProviderPermanentError,
    ProviderTransientError,
    YouTubeQuotaExceededError,
)
from video_harvest.services.records import SearchWindow
from video_harvest.services.youtube_client import (
    build_youtube_client,
    classify_provider_error,
    fetch_video_details,
    format_rfc3339,
    list_search_page_ids,
    parse_iso8601_duration_seconds,
    validate_api_key,
    video_record_from_details,
)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("PT1H2M3S", 3723),
        ("PT0S", 0),
        ("PT45M", 2700),
        ("PT10S", 10),
        ("PT2H", 7200),
        ("P1DT1S", 86401),
        ("P0D", 0),
        ("garbage", 0),
        ("", 0),
        ("1H2M", 0),
        ("PT1.5S", 0),
        (None, 0),
        (42, 0),
    ],
)
def test_parse_iso8601_duration_seconds(raw: object, expected: int) -> None:
    assert parse_iso8601_duration_seconds(raw) == expected


def test_format_rfc3339_uses_z_suffix() -> None:
    assert format_rfc3339(datetime(2024, 3, 4, 5, 6, 7, tzinfo=UTC)) == "2024-03-04T05:06:07Z"
    assert format_rfc3339(datetime(2024, 3, 4)) == "2024-03-04T00:00:00Z"


def test_classify_quota_exceeded_with_retry_after() -> None:
    error = classify_provider_error(quota_error(retry_after="120"))

    assert isinstance(error, YouTubeQuotaExceededError)
    assert error.retry_after_seconds == 120
    assert error.reason == "quotaexceeded"


def test_classify_daily_limit_exceeded_is_quota() -> None:
    error = classify_provider_error(FakeHttpError(403, "dailyLimitExceeded"))

    assert isinstance(error, YouTubeQuotaExceededError)
    assert error.retry_after_seconds is None


@pytest.mark.parametrize(
    ("status", "reason"),
    [
        (400, "invalidParameter"),
        (401, "unauthorized"),
        (403, "forbidden"),
        (403, "accessNotConfigured"),
    ],
)
def test_classify_permanent_errors(status: int, reason: str) -> None:
    error = classify_provider_error(FakeHttpError(status, reason))

    assert isinstance(error, ProviderPermanentError)
    assert error.status_code == status


@pytest.mark.parametrize(
    ("status", "reason"),
    [
        (403, "rateLimitExceeded"),
        (429, "rateLimitExceeded"),
        (500, "backendError"),
        (503, None),
        (404, "notFound"),
    ],
)
def test_classify_transient_errors(status: int, reason: str | None) -> None:
    assert isinstance(classify_provider_error(FakeHttpError(status, reason)), ProviderTransientError)


def test_classify_network_error_is_transient() -> None:
    assert isinstance(classify_provider_error(TimeoutError("timed out")), ProviderTransientError)


def test_list_search_page_ids_sends_window_parameters() -> None:
    client = FakeYouTubeClient(
        search_handler=lambda _kwargs: search_response(["a", "b"], next_page_token="NEXT")
    )
    window = SearchWindow(
        start=datetime(2024, 1, 1, tzinfo=UTC),
        end=datetime(2024, 6, 29, tzinfo=UTC),
    )

    video_ids, next_token = list_search_page_ids(
        client,
        query="lupus symptoms",
        window=window,
        page_size=500,
        page_token="TOKEN",
        order="date",
        language="en",
        region_code="US",
    )

    assert video_ids == ["a", "b"]
    assert next_token == "NEXT"
    [call] = client.calls_to("search")
    assert call == {
        "part": "id",
        "q": "lupus symptoms",
        "type": "video",
        "maxResults": 50,
        "order": "date",
        "regionCode": "US",
        "relevanceLanguage": "en",
        "publishedAfter": "2024-01-01T00:00:00Z",
        "publishedBefore": "2024-06-29T00:00:00Z",
        "videoDuration": "any",
        "pageToken": "TOKEN",
    }


def test_list_search_page_ids_omits_token_on_first_page() -> None:
    client = FakeYouTubeClient(search_handler=lambda _kwargs: search_response([]))
    window = SearchWindow(
        start=datetime(2024, 1, 1, tzinfo=UTC),
        end=datetime(2024, 2, 1, tzinfo=UTC),
    )

    video_ids, next_token = list_search_page_ids(
        client,
        query="q",
        window=window,
        page_size=10,
        page_token=None,
        order="relevance",
        language="en",
        region_code="US",
    )

    assert video_ids == []
    assert next_token is None
    assert "pageToken" not in client.calls_to("search")[0]


def test_quota_error_surfaces_from_search_call() -> None:
    def handler(_kwargs: dict[str, object]) -> dict[str, object]:
        raise quota_error()

    client = FakeYouTubeClient(search_handler=handler)
    window = SearchWindow(
        start=datetime(2024, 1, 1, tzinfo=UTC),
        end=datetime(2024, 2, 1, tzinfo=UTC),
    )

    with pytest.raises(YouTubeQuotaExceededError):
        list_search_page_ids(
            client,
            query="q",
            window=window,
            page_size=10,
            page_token=None,
            order="relevance",
            language="en",
            region_code="US",
        )


def test_malformed_response_is_transient() -> None:
    client = FakeYouTubeClient(search_handler=lambda _kwargs: ["not", "a", "dict"])  # type: ignore[arg-type,return-value]
    window = SearchWindow(
        start=datetime(2024, 1, 1, tzinfo=UTC),
        end=datetime(2024, 2, 1, tzinfo=UTC),
    )

    with pytest.raises(ProviderTransientError):
        list_search_page_ids(
            client,
            query="q",
            window=window,
            page_size=10,
            page_token=None,
            order="relevance",
            language="en",
            region_code="US",
        )


def test_fetch_video_details_batches_at_fifty_ids() -> None:
    ids = [f"v{index:03d}" for index in range(120)]
    client = FakeYouTubeClient(details={video_id: detail_item(video_id) for video_id in ids})

    records, calls = fetch_video_details(client, ids + ids[:5])

    assert calls == 3
    assert len(records) == 120
    batch_sizes = [len(str(call["id"]).split(",")) for call in client.calls_to("videos")]
    assert batch_sizes == [50, 50, 20]
    assert all(call["part"] == "snippet,contentDetails,statistics" for call in client.calls_to("videos"))


def test_video_record_from_details_maps_fields() -> None:
    record = video_record_from_details(
        detail_item("abc", title="Living with lupus", duration="PT1H2M3S", views="1234")
    )

    assert record is not None
    assert record.video_id == "abc"
    assert record.title == "Living with lupus"
    assert record.duration_seconds == 3723
    assert record.view_count == 1234
    assert record.url == "https://www.youtube.com/watch?v=abc"
    assert record.thumbnail_url == "https://img.example/abc/high.jpg"
    assert record.channel_name == "Test Channel"
    assert record.published_at == datetime(2024, 1, 1, tzinfo=UTC)


def test_video_record_from_details_tolerates_missing_parts() -> None:
    record = video_record_from_details({"id": "bare"})

    assert record is not None
    assert record.title == ""
    assert record.duration_seconds == 0
    assert record.view_count == 0
    assert record.thumbnail_url == ""
    assert record.published_at is None
    assert video_record_from_details({"snippet": {}}) is None


def test_validate_api_key() -> None:
    assert validate_api_key(FakeYouTubeClient()) is True
    assert validate_api_key(FakeYouTubeClient(channels_handler=lambda _kwargs: {"items": []})) is False

    def rejected(_kwargs: dict[str, object]) -> dict[str, object]:
        raise FakeHttpError(400, "keyInvalid")

    assert validate_api_key(FakeYouTubeClient(channels_handler=rejected)) is False


def test_build_youtube_client_uses_discovery(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: dict[str, object] = {}

    def fake_build(*args: object, **kwargs: object) -> str:
        captured["args"] = args
        captured["kwargs"] = kwargs
        return "client"

    def fake_import_module(name: str) -> object:
        assert name == "googleapiclient.discovery"
        return types.SimpleNamespace(build=fake_build)

    monkeypatch.setattr(youtube_client, "import_module", fake_import_module)

    assert build_youtube_client("  key-123 ") == "client"
    assert captured["args"] == ("youtube", "v3")
    assert captured["kwargs"] == {"developerKey": "key-123", "cache_discovery": False}


def test_build_youtube_client_requires_key() -> None:
    with pytest.raises(ProviderPermanentError):
        build_youtube_client("   ")
