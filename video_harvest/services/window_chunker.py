from __future__ import annotations

from collections.abc import Iterator
from datetime import datetime, timedelta

from video_harvest.services.records import SearchWindow, as_utc

DEFAULT_CHUNK_DAYS = 180


class WindowChunker:
    """
    Ordered, contiguous publication windows covering `[start, end)`.

    Iteration is lazy and restartable: every `iter()` walks the range again from
    `start`. Each window spans at most `chunk_days`; only the last one may be
    shorter. An empty or inverted range yields nothing.
    """

    def __init__(
        self,
        start: datetime,
        end: datetime,
        *,
        chunk_days: int = DEFAULT_CHUNK_DAYS,
    ) -> None:
        if chunk_days < 1:
            raise ValueError("chunk_days must be at least 1.")
        self._start = as_utc(start)
        self._end = as_utc(end)
        self._step = timedelta(days=chunk_days)

    @property
    def start(self) -> datetime:
        return self._start

    @property
    def end(self) -> datetime:
        return self._end

    def __iter__(self) -> Iterator[SearchWindow]:
        cursor = self._start
        while cursor < self._end:
            window_end = min(cursor + self._step, self._end)
            yield SearchWindow(start=cursor, end=window_end)
            cursor = window_end

    def __len__(self) -> int:
        if self._start >= self._end:
            return 0
        full_windows, remainder = divmod(self._end - self._start, self._step)
        return full_windows + (1 if remainder else 0)


def chunk_windows(
    start: datetime,
    end: datetime,
    chunk_days: int = DEFAULT_CHUNK_DAYS,
) -> WindowChunker:
    return WindowChunker(start, end, chunk_days=chunk_days)
