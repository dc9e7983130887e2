from __future__ import annotations

from video_harvest.repositories.common import utc_now_iso
from video_harvest.repositories.database import Database


class HarvestStateRepository:
    def __init__(self, db: Database) -> None:
        self._db = db

    def get_value(self, key: str) -> str | None:
        with self._db.connection() as conn:
            row = conn.execute(
                """
                SELECT value_text
                FROM harvest_state
                WHERE state_key = ?
                """,
                (key,),
            ).fetchone()

        if row is None:
            return None
        raw_value = row["value_text"]
        if isinstance(raw_value, str) and raw_value.strip():
            return raw_value
        return None

    def set_value(self, *, key: str, value: str) -> None:
        now_iso = utc_now_iso()
        with self._db.connection() as conn:
            conn.execute(
                """
                INSERT INTO harvest_state (state_key, value_text, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(state_key) DO UPDATE SET
                    value_text = excluded.value_text,
                    updated_at = excluded.updated_at
                """,
                (key, value, now_iso),
            )

    def clear_value(self, *, key: str) -> None:
        with self._db.connection() as conn:
            conn.execute("DELETE FROM harvest_state WHERE state_key = ?", (key,))
