from __future__ import annotations

from collections.abc import Iterable

from video_harvest.services.records import VideoRecord


def dedupe_videos(videos: Iterable[VideoRecord]) -> list[VideoRecord]:
    seen_ids: set[str] = set()
    unique: list[VideoRecord] = []
    for video in videos:
        if video.video_id in seen_ids:
            continue
        seen_ids.add(video.video_id)
        unique.append(video)
    return unique
