"""JSON documents passed between pipeline stages.

Every file is a single UTF-8 JSON array. Readers accept the looser shapes older
stage outputs used: id files may hold objects instead of strings, and
transcript files may be JSON lines.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Any, cast

from video_harvest.services.errors import InterchangeFileError
from video_harvest.services.records import AnalysisRecord, TranscriptRecord, VideoRecord

LOGGER = logging.getLogger("video_harvest.interchange")

NOT_AVAILABLE_TRANSCRIPT = "NOT AVAILABLE"


def stage_file_path(output_dir: Path, search_name: str, stage: str) -> Path:
    slug = "-".join(search_name.strip().lower().split())
    return output_dir / f"{slug}-{stage}.json"


def write_json_array(path: Path, items: Iterable[Any]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        json.dumps(list(items), indent=2, ensure_ascii=False) + "\n",
        encoding="utf-8",
    )
    return path


def read_json_array(path: Path) -> list[Any]:
    parsed = _load_json_document(path)
    if not isinstance(parsed, list):
        raise InterchangeFileError(f"{path} must contain a JSON array.")
    return list(cast(list[Any], parsed))


def write_videos(path: Path, videos: Iterable[VideoRecord]) -> Path:
    return write_json_array(path, (video.to_dict() for video in videos))


def read_videos(path: Path) -> list[VideoRecord]:
    videos: list[VideoRecord] = []
    for item in read_json_array(path):
        record = VideoRecord.from_dict(item) if isinstance(item, dict) else None
        if record is None:
            LOGGER.warning("interchange skipped_video path=%s", path)
            continue
        videos.append(record)
    return videos


def write_video_ids(path: Path, video_ids: Iterable[str]) -> Path:
    return write_json_array(path, video_ids)


def read_video_ids(path: Path) -> list[str]:
    video_ids: list[str] = []
    for item in read_json_array(path):
        video_id = _video_id_from_item(item)
        if video_id is not None:
            video_ids.append(video_id)
    return video_ids


def write_transcripts(path: Path, transcripts: Iterable[TranscriptRecord]) -> Path:
    return write_json_array(path, (record.to_dict() for record in transcripts))


def read_transcripts(path: Path) -> list[TranscriptRecord]:
    try:
        items = read_json_array(path)
    except InterchangeFileError:
        items = _read_json_lines(path)

    records: list[TranscriptRecord] = []
    for item in items:
        record = TranscriptRecord.from_dict(item) if isinstance(item, dict) else None
        if record is None:
            continue
        if record.transcript.strip() == NOT_AVAILABLE_TRANSCRIPT:
            continue
        records.append(record)
    return records


def write_analyses(path: Path, analyses: Iterable[AnalysisRecord]) -> Path:
    return write_json_array(path, (record.to_dict() for record in analyses))


def read_analyses(path: Path) -> list[AnalysisRecord]:
    records: list[AnalysisRecord] = []
    for item in read_json_array(path):
        record = AnalysisRecord.from_dict(item) if isinstance(item, dict) else None
        if record is not None:
            records.append(record)
    return records


def _load_json_document(path: Path) -> Any:
    try:
        raw_text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise InterchangeFileError(f"Could not read {path}: {exc}") from exc
    try:
        return json.loads(raw_text)
    except json.JSONDecodeError as exc:
        raise InterchangeFileError(f"{path} is not valid JSON: {exc}") from exc


def _read_json_lines(path: Path) -> list[Any]:
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError as exc:
        raise InterchangeFileError(f"Could not read {path}: {exc}") from exc

    items: list[Any] = []
    for line_number, line in enumerate(lines, start=1):
        if not line.strip():
            continue
        try:
            items.append(json.loads(line))
        except json.JSONDecodeError:
            LOGGER.warning("interchange skipped_line path=%s line=%s", path, line_number)
    return items


def _video_id_from_item(item: Any) -> str | None:
    if isinstance(item, str):
        return item.strip() or None
    if isinstance(item, dict):
        payload = cast(dict[str, Any], item)
        for key in ("id", "video_id", "videoId"):
            value = payload.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    return None
