from __future__ import annotations

from dataclasses import dataclass, field

from video_harvest.repositories.common import utc_now_iso
from video_harvest.repositories.database import Database


@dataclass(frozen=True)
class QuotaUsage:
    quota_day: str
    units: int
    calls: int
    by_operation: dict[str, int] = field(default_factory=dict)


class YouTubeQuotaRepository:
    """Estimated YouTube Data API units, keyed by credential, quota day and API operation.

    A quota day is the calendar date in the provider's reset timezone, so a
    day's total falls back to zero exactly when the real quota does. The
    credential is an opaque scope label, never the key itself.
    """

    def __init__(self, db: Database) -> None:
        self._db = db

    def add_units(
        self,
        *,
        quota_day: str,
        operation: str,
        units: int,
        credential: str = "",
    ) -> None:
        if units <= 0:
            return
        with self._db.connection() as conn:
            conn.execute(
                """
                INSERT INTO youtube_quota_usage (
                    credential, quota_day, operation, units, calls, updated_at
                )
                VALUES (?, ?, ?, ?, 1, ?)
                ON CONFLICT(credential, quota_day, operation) DO UPDATE SET
                    units = youtube_quota_usage.units + excluded.units,
                    calls = youtube_quota_usage.calls + 1,
                    updated_at = excluded.updated_at
                """,
                (credential, quota_day, operation, units, utc_now_iso()),
            )

    def usage_for_day(self, quota_day: str, *, credential: str = "") -> QuotaUsage:
        with self._db.connection() as conn:
            rows = conn.execute(
                """
                SELECT operation, units, calls
                FROM youtube_quota_usage
                WHERE credential = ? AND quota_day = ?
                ORDER BY operation
                """,
                (credential, quota_day),
            ).fetchall()

        by_operation = {str(row["operation"]): int(row["units"]) for row in rows}
        return QuotaUsage(
            quota_day=quota_day,
            units=sum(by_operation.values()),
            calls=sum(int(row["calls"]) for row in rows),
            by_operation=by_operation,
        )
