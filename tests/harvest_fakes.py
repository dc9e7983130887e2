from __future__ import annotations

import json
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

Handler = Callable[[dict[str, Any]], dict[str, Any]]


class FakeHttpError(Exception):
    """Shaped like `googleapiclient.errors.HttpError` (resp.status + JSON content)."""

    def __init__(
        self,
        status: int,
        reason: str | None = None,
        *,
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(f"<HttpError {status} reason={reason}>")
        self.resp = _FakeResponse(status, headers or {})
        errors = [{"reason": reason, "message": reason}] if reason else []
        self.content = json.dumps(
            {"error": {"code": status, "message": reason or "error", "errors": errors}}
        ).encode("utf-8")


class _FakeResponse(dict[str, str]):
    def __init__(self, status: int, headers: dict[str, str]) -> None:
        super().__init__(headers)
        self.status = status


def quota_error(*, retry_after: str | None = None) -> FakeHttpError:
    headers = {"retry-after": retry_after} if retry_after is not None else None
    return FakeHttpError(403, "quotaExceeded", headers=headers)


def detail_item(
    video_id: str,
    *,
    title: str | None = None,
    duration: str = "PT1M",
    views: str = "10",
    published_at: str = "2024-01-01T00:00:00Z",
) -> dict[str, Any]:
    return {
        "id": video_id,
        "snippet": {
            "title": title or f"Video {video_id}",
            "description": f"About {video_id}",
            "publishedAt": published_at,
            "channelTitle": "Test Channel",
            "thumbnails": {
                "default": {"url": f"https://img.example/{video_id}/default.jpg"},
                "high": {"url": f"https://img.example/{video_id}/high.jpg"},
            },
        },
        "contentDetails": {"duration": duration},
        "statistics": {"viewCount": views},
    }


def search_response(video_ids: list[str], next_page_token: str | None = None) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "items": [{"id": {"kind": "youtube#video", "videoId": video_id}} for video_id in video_ids]
    }
    if next_page_token is not None:
        payload["nextPageToken"] = next_page_token
    return payload


class _FakeRequest:
    def __init__(self, handler: Handler, kwargs: dict[str, Any]) -> None:
        self._handler = handler
        self._kwargs = kwargs

    def execute(self) -> dict[str, Any]:
        return self._handler(self._kwargs)


class _FakeResource:
    def __init__(self, client: FakeYouTubeClient, name: str, handler: Handler) -> None:
        self._client = client
        self._name = name
        self._handler = handler

    def list(self, **kwargs: Any) -> _FakeRequest:
        self._client.calls.append((self._name, kwargs))
        return _FakeRequest(self._handler, kwargs)


class FakeYouTubeClient:
    """Mimics `client.search().list(**kw).execute()` and friends."""

    def __init__(
        self,
        *,
        search_handler: Handler | None = None,
        details: dict[str, dict[str, Any]] | None = None,
        videos_handler: Handler | None = None,
        channels_handler: Handler | None = None,
    ) -> None:
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.details = details if details is not None else {}
        self._search_handler = search_handler or (lambda _kwargs: {"items": []})
        self._videos_handler = videos_handler or self._default_videos_handler
        self._channels_handler = channels_handler or (lambda _kwargs: {"items": [{"id": "x"}]})

    def search(self) -> _FakeResource:
        return _FakeResource(self, "search", self._search_handler)

    def videos(self) -> _FakeResource:
        return _FakeResource(self, "videos", self._videos_handler)

    def channels(self) -> _FakeResource:
        return _FakeResource(self, "channels", self._channels_handler)

    def calls_to(self, name: str) -> list[dict[str, Any]]:
        return [kwargs for call_name, kwargs in self.calls if call_name == name]

    def _default_videos_handler(self, kwargs: dict[str, Any]) -> dict[str, Any]:
        requested = str(kwargs.get("id", "")).split(",")
        return {
            "items": [self.details[video_id] for video_id in requested if video_id in self.details]
        }


class FakeClock:
    """Clock plus sleeper; sleeping advances the clock instead of blocking."""

    def __init__(self, now: datetime) -> None:
        self.now = now
        self.sleeps: list[float] = []

    def __call__(self) -> datetime:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += timedelta(seconds=seconds)
