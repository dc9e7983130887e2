from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import cast

from video_harvest.repositories.common import (
    encode_optional_json,
    parse_timestamp,
    utc_now_iso,
)
from video_harvest.repositories.database import Database
from video_harvest.services.records import AnalysisRecord, TranscriptRecord, VideoRecord


@dataclass(frozen=True)
class SearchConfig:
    search_name: str
    search_phrase: str
    user_id: str
    creation_date: datetime


class VideoRepository:
    def __init__(self, db: Database) -> None:
        self._db = db

    def upsert_videos(
        self,
        *,
        videos: Iterable[VideoRecord],
        search_name: str | None = None,
    ) -> int:
        now_iso = utc_now_iso()
        stored = 0
        with self._db.connection() as conn:
            for video in videos:
                conn.execute(
                    """
                    INSERT INTO videos (
                        video_id, search_name, title, description, published_at,
                        duration_seconds, view_count, url, thumbnail_url, channel_name, stored_at
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(video_id) DO UPDATE SET
                        search_name = COALESCE(excluded.search_name, videos.search_name),
                        title = excluded.title,
                        description = excluded.description,
                        published_at = excluded.published_at,
                        duration_seconds = excluded.duration_seconds,
                        view_count = excluded.view_count,
                        url = excluded.url,
                        thumbnail_url = excluded.thumbnail_url,
                        channel_name = excluded.channel_name,
                        stored_at = excluded.stored_at
                    """,
                    (
                        video.video_id,
                        search_name if search_name is not None else video.search_name,
                        video.title,
                        video.description,
                        video.published_at.isoformat() if video.published_at else None,
                        video.duration_seconds,
                        video.view_count,
                        video.url,
                        video.thumbnail_url,
                        video.channel_name,
                        now_iso,
                    ),
                )
                stored += 1
        return stored

    def upsert_transcripts(self, *, transcripts: Iterable[TranscriptRecord]) -> int:
        now_iso = utc_now_iso()
        stored = 0
        with self._db.connection() as conn:
            for record in transcripts:
                conn.execute(
                    """
                    INSERT INTO transcripts (video_id, transcript, language, stored_at)
                    VALUES (?, ?, ?, ?)
                    ON CONFLICT(video_id) DO UPDATE SET
                        transcript = excluded.transcript,
                        language = excluded.language,
                        stored_at = excluded.stored_at
                    """,
                    (record.video_id, record.transcript, record.language, now_iso),
                )
                stored += 1
        return stored

    def upsert_analyses(self, *, analyses: Iterable[AnalysisRecord]) -> int:
        now_iso = utc_now_iso()
        stored = 0
        with self._db.connection() as conn:
            for record in analyses:
                conn.execute(
                    """
                    INSERT INTO analysis (
                        video_id, video_type, name, age, sex, location, symptoms_json,
                        medical_history_of_patient_json, family_medical_history_json,
                        challenges_faced_during_diagnosis_json, key_opinion, stored_at
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(video_id) DO UPDATE SET
                        video_type = excluded.video_type,
                        name = excluded.name,
                        age = excluded.age,
                        sex = excluded.sex,
                        location = excluded.location,
                        symptoms_json = excluded.symptoms_json,
                        medical_history_of_patient_json = excluded.medical_history_of_patient_json,
                        family_medical_history_json = excluded.family_medical_history_json,
                        challenges_faced_during_diagnosis_json =
                            excluded.challenges_faced_during_diagnosis_json,
                        key_opinion = excluded.key_opinion,
                        stored_at = excluded.stored_at
                    """,
                    (
                        record.video_id,
                        record.video_type,
                        record.name,
                        record.age,
                        record.sex,
                        record.location,
                        encode_optional_json(
                            list(record.symptoms) if record.symptoms is not None else None
                        ),
                        encode_optional_json(record.medical_history_of_patient),
                        encode_optional_json(record.family_medical_history),
                        encode_optional_json(
                            list(record.challenges_faced_during_diagnosis)
                            if record.challenges_faced_during_diagnosis is not None
                            else None
                        ),
                        record.key_opinion,
                        now_iso,
                    ),
                )
                stored += 1
        return stored

    def upsert_search_config(
        self,
        *,
        search_name: str,
        search_phrase: str,
        user_id: str,
    ) -> None:
        with self._db.connection() as conn:
            conn.execute(
                """
                INSERT INTO search_config (search_name, search_phrase, user_id, creation_date)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(search_name) DO UPDATE SET
                    search_phrase = excluded.search_phrase,
                    user_id = excluded.user_id,
                    creation_date = excluded.creation_date
                """,
                (search_name, search_phrase, user_id, utc_now_iso()),
            )

    def get_search_config(self, search_name: str) -> SearchConfig | None:
        with self._db.connection() as conn:
            row = conn.execute(
                """
                SELECT search_name, search_phrase, user_id, creation_date
                FROM search_config
                WHERE search_name = ?
                """,
                (search_name,),
            ).fetchone()

        if row is None:
            return None
        creation_date = parse_timestamp(row["creation_date"])
        if creation_date is None:
            return None
        return SearchConfig(
            search_name=str(row["search_name"]),
            search_phrase=str(row["search_phrase"]),
            user_id=str(row["user_id"]),
            creation_date=creation_date,
        )

    def list_video_ids(self, *, search_name: str) -> list[str]:
        with self._db.connection() as conn:
            rows = conn.execute(
                """
                SELECT video_id
                FROM videos
                WHERE search_name = ?
                ORDER BY published_at, video_id
                """,
                (search_name,),
            ).fetchall()
        return [str(row["video_id"]) for row in rows]

    def count_videos(self, *, search_name: str) -> int:
        return self._count(
            "SELECT COUNT(*) AS total FROM videos WHERE search_name = ?",
            (search_name,),
        )

    def count_transcripts(self, *, search_name: str) -> int:
        return self._count(
            """
            SELECT COUNT(*) AS total
            FROM transcripts
            WHERE video_id IN (SELECT video_id FROM videos WHERE search_name = ?)
            """,
            (search_name,),
        )

    def count_analyses(self, *, search_name: str) -> int:
        return self._count(
            """
            SELECT COUNT(*) AS total
            FROM analysis
            WHERE video_id IN (SELECT video_id FROM videos WHERE search_name = ?)
            """,
            (search_name,),
        )

    def count_analyses_by_type(self, *, search_name: str, video_type: str) -> int:
        return self._count(
            """
            SELECT COUNT(*) AS total
            FROM analysis
            WHERE video_type = ?
              AND video_id IN (SELECT video_id FROM videos WHERE search_name = ?)
            """,
            (video_type, search_name),
        )

    def _count(self, sql: str, params: tuple[object, ...]) -> int:
        with self._db.connection() as conn:
            row = conn.execute(sql, params).fetchone()
        if row is None:
            return 0
        return int(cast(int, row["total"]))
