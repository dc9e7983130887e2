from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

import pytest

from harvest_fakes import FakeClock, FakeHttpError, FakeYouTubeClient, detail_item, quota_error
from video_harvest.services.errors import ProviderPermanentError
from video_harvest.services.quota_governor import QuotaGovernor
from video_harvest.services.video_lookup import VideoLookup


def _lookup(client: FakeYouTubeClient) -> tuple[VideoLookup, FakeClock]:
    clock = FakeClock(datetime(2024, 7, 10, 20, 0, tzinfo=UTC))
    return VideoLookup(client, QuotaGovernor(clock=clock, sleep=clock.sleep)), clock


def test_lookup_returns_record() -> None:
    client = FakeYouTubeClient(details={"abc": detail_item("abc", duration="PT45M")})
    lookup, _clock = _lookup(client)

    record = lookup.lookup("abc", search_name="lupus")

    assert record is not None
    assert record.duration_seconds == 2700
    assert record.search_name == "lupus"
    assert len(client.calls_to("videos")) == 1
    assert client.calls_to("search") == []


def test_lookup_not_found_returns_none() -> None:
    lookup, _clock = _lookup(FakeYouTubeClient())

    assert lookup.lookup("missing") is None


def test_lookup_retries_after_quota() -> None:
    attempts: list[int] = []

    def videos_handler(_kwargs: dict[str, Any]) -> dict[str, Any]:
        attempts.append(1)
        if len(attempts) == 1:
            raise quota_error(retry_after="60")
        return {"items": [detail_item("abc")]}

    lookup, clock = _lookup(FakeYouTubeClient(videos_handler=videos_handler))

    record = lookup.lookup("abc")

    assert record is not None
    assert len(attempts) == 2
    assert sum(clock.sleeps) == pytest.approx(60)


def test_lookup_transient_error_returns_none() -> None:
    def videos_handler(_kwargs: dict[str, Any]) -> dict[str, Any]:
        raise FakeHttpError(502, None)

    lookup, _clock = _lookup(FakeYouTubeClient(videos_handler=videos_handler))

    assert lookup.lookup("abc") is None


def test_lookup_permanent_error_raises() -> None:
    def videos_handler(_kwargs: dict[str, Any]) -> dict[str, Any]:
        raise FakeHttpError(400, "keyInvalid")

    lookup, _clock = _lookup(FakeYouTubeClient(videos_handler=videos_handler))

    with pytest.raises(ProviderPermanentError):
        lookup.lookup("abc")


def test_lookup_blank_id_makes_no_call() -> None:
    client = FakeYouTubeClient()
    lookup, _clock = _lookup(client)

    assert lookup.lookup("  ") is None
    assert client.calls == []
