from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS videos (
    video_id TEXT PRIMARY KEY,
    search_name TEXT NULL,
    title TEXT NOT NULL,
    description TEXT NOT NULL,
    published_at TEXT NULL,
    duration_seconds INTEGER NOT NULL,
    view_count INTEGER NOT NULL,
    url TEXT NOT NULL,
    thumbnail_url TEXT NOT NULL,
    channel_name TEXT NOT NULL,
    stored_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_videos_search_name ON videos(search_name);

CREATE TABLE IF NOT EXISTS transcripts (
    video_id TEXT PRIMARY KEY,
    transcript TEXT NOT NULL,
    language TEXT NOT NULL,
    stored_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS analysis (
    video_id TEXT PRIMARY KEY,
    video_type TEXT NULL,
    name TEXT NULL,
    age TEXT NULL,
    sex TEXT NULL,
    location TEXT NULL,
    symptoms_json TEXT NULL,
    medical_history_of_patient_json TEXT NULL,
    family_medical_history_json TEXT NULL,
    challenges_faced_during_diagnosis_json TEXT NULL,
    key_opinion TEXT NULL,
    stored_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_analysis_video_type ON analysis(video_type);

CREATE TABLE IF NOT EXISTS search_config (
    search_name TEXT PRIMARY KEY,
    search_phrase TEXT NOT NULL,
    user_id TEXT NOT NULL,
    creation_date TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS youtube_quota_usage (
    credential TEXT NOT NULL,
    quota_day TEXT NOT NULL,
    operation TEXT NOT NULL,
    units INTEGER NOT NULL,
    calls INTEGER NOT NULL,
    updated_at TEXT NOT NULL,
    PRIMARY KEY (credential, quota_day, operation)
);

CREATE TABLE IF NOT EXISTS harvest_state (
    state_key TEXT PRIMARY KEY,
    value_text TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
"""


class Database:
    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self._path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def initialize(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self.connection() as conn:
            conn.executescript(SCHEMA_SQL)
