from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, time, timedelta
from hashlib import sha256
from threading import Event, Lock
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from video_harvest.repositories.common import parse_timestamp
from video_harvest.repositories.harvest_state_repository import HarvestStateRepository
from video_harvest.repositories.youtube_quota_repository import QuotaUsage, YouTubeQuotaRepository
from video_harvest.services.errors import QuotaWaitCancelledError

LOGGER = logging.getLogger("video_harvest.quota")

SUSPENDED_UNTIL_STATE_KEY = "youtube_quota_suspended_until"
CREDENTIAL_SCOPE_LENGTH = 16
DEFAULT_RESET_TIMEZONE = "America/Los_Angeles"
DEFAULT_DAILY_LIMIT = 10_000
DEFAULT_WARNING_PERCENT = 0.8
MAX_SLEEP_CHUNK_SECONDS = 60.0


@dataclass(frozen=True)
class QuotaState:
    exceeded: bool
    reset_at: datetime | None


def credential_scope(api_key: str) -> str:
    """Stable, non-reversible label for an API key, used to partition stored quota state."""
    digest = sha256(api_key.strip().encode("utf-8")).hexdigest()
    return digest[:CREDENTIAL_SCOPE_LENGTH]


def suspended_until_state_key(scope: str) -> str:
    return f"{SUSPENDED_UNTIL_STATE_KEY}:{scope}" if scope else SUSPENDED_UNTIL_STATE_KEY


def resolve_reset_zone(name: str) -> ZoneInfo:
    normalized = name.strip()
    if not normalized:
        raise ValueError("Quota reset timezone must not be empty")
    try:
        return ZoneInfo(normalized)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Unknown quota reset timezone: {name}") from exc


def next_quota_reset(now: datetime, zone: ZoneInfo) -> datetime:
    """Start of the calendar day after `now` in `zone`, as a UTC instant."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=UTC)
    local_now = now.astimezone(zone)
    next_day = local_now.date() + timedelta(days=1)
    return datetime.combine(next_day, time.min, tzinfo=zone).astimezone(UTC)


def _utc_now() -> datetime:
    return datetime.now(UTC)


class QuotaGovernor:
    """Suspends callers while the provider's daily quota is exhausted.

    One governor is shared by every fetch running against the same credential.
    A trip moves it to the suspended state with a deadline; callers block in
    `await_if_suspended` until the clock reaches that deadline. A later trip
    never shortens an existing suspension.

    Stored state (the deadline and the usage rows) is partitioned by
    `credential_scope`, so several keys can share one database.

    `cancel` aborts the suspended waits in progress. The request is consumed
    once no caller is left inside `await_if_suspended`.
    """

    def __init__(
        self,
        *,
        credential_scope: str = "",
        reset_timezone: str = DEFAULT_RESET_TIMEZONE,
        clock: Callable[[], datetime] | None = None,
        sleep: Callable[[float], object] | None = None,
        state_repository: HarvestStateRepository | None = None,
        usage_repository: YouTubeQuotaRepository | None = None,
        daily_limit: int = DEFAULT_DAILY_LIMIT,
        warning_percent: float = DEFAULT_WARNING_PERCENT,
        max_sleep_chunk_seconds: float = MAX_SLEEP_CHUNK_SECONDS,
    ) -> None:
        self._zone = resolve_reset_zone(reset_timezone)
        self._credential_scope = credential_scope
        self._state_key = suspended_until_state_key(credential_scope)
        self._clock = clock or _utc_now
        self._cancelled = Event()
        self._sleep = sleep or self._cancelled.wait
        self._state_repository = state_repository
        self._usage_repository = usage_repository
        self._daily_limit = max(0, daily_limit)
        self._warning_threshold = int(self._daily_limit * max(0.0, min(1.0, warning_percent)))
        self._max_sleep_chunk_seconds = max(0.001, max_sleep_chunk_seconds)
        self._lock = Lock()
        self._waiters = 0
        self._suspended_until: datetime | None = self._load_persisted_deadline()

    @property
    def credential_scope(self) -> str:
        return self._credential_scope

    @property
    def state(self) -> QuotaState:
        with self._lock:
            deadline = self._suspended_until
        return QuotaState(exceeded=deadline is not None, reset_at=deadline)

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def trip(
        self,
        *,
        reset_at: datetime | None = None,
        retry_after_seconds: int | None = None,
    ) -> datetime:
        now = self._clock()
        if reset_at is not None:
            candidate = reset_at if reset_at.tzinfo is not None else reset_at.replace(tzinfo=UTC)
            candidate = candidate.astimezone(UTC)
            source = "provider_reset"
        elif retry_after_seconds is not None and retry_after_seconds > 0:
            candidate = now + timedelta(seconds=retry_after_seconds)
            source = "retry_after"
        else:
            candidate = next_quota_reset(now, self._zone)
            source = "daily_boundary"

        with self._lock:
            current = self._suspended_until
            deadline = candidate if current is None or candidate > current else current
            self._suspended_until = deadline
            # Written under the lock so the stored deadline never moves backwards.
            self._persist_deadline(deadline)

        LOGGER.warning(
            "youtube quota tripped source=%s suspended_until=%s wait_seconds=%s",
            source,
            deadline.isoformat(),
            max(0, int((deadline - now).total_seconds())),
        )
        return deadline

    def await_if_suspended(self) -> None:
        with self._lock:
            self._waiters += 1
        try:
            self._wait_for_deadline()
        finally:
            with self._lock:
                self._waiters -= 1
                if self._waiters == 0:
                    self._cancelled.clear()

    def cancel(self) -> None:
        self._cancelled.set()
        LOGGER.info("youtube quota wait cancelled")

    def current_quota_day(self) -> str:
        return self._clock().astimezone(self._zone).date().isoformat()

    def record_usage(self, operation: str, units: int) -> QuotaUsage | None:
        if self._usage_repository is None:
            return None
        quota_day = self.current_quota_day()
        self._usage_repository.add_units(
            credential=self._credential_scope,
            quota_day=quota_day,
            operation=operation,
            units=units,
        )
        usage = self._usage_repository.usage_for_day(
            quota_day,
            credential=self._credential_scope,
        )
        if self._daily_limit > 0 and usage.units >= self._warning_threshold:
            LOGGER.warning(
                "youtube quota near_limit operation=%s units_today=%s daily_limit=%s",
                operation,
                usage.units,
                self._daily_limit,
            )
        return usage

    def _wait_for_deadline(self) -> None:
        announced = False
        while True:
            with self._lock:
                deadline = self._suspended_until
            if deadline is None:
                return
            if self._cancelled.is_set():
                raise QuotaWaitCancelledError("Quota suspension wait was cancelled.")

            now = self._clock()
            remaining_seconds = (deadline - now).total_seconds()
            if remaining_seconds <= 0:
                self._resume(deadline)
                continue

            if not announced:
                LOGGER.info(
                    "youtube quota waiting suspended_until=%s wait_seconds=%s",
                    deadline.isoformat(),
                    int(remaining_seconds),
                )
                announced = True
            self._sleep(min(remaining_seconds, self._max_sleep_chunk_seconds))

    def _resume(self, deadline: datetime) -> None:
        with self._lock:
            if self._suspended_until != deadline:
                # Tripped again with a later deadline while we were sleeping.
                return
            self._suspended_until = None
            self._persist_deadline(None)
        LOGGER.info("youtube quota resumed deadline=%s", deadline.isoformat())

    def _load_persisted_deadline(self) -> datetime | None:
        if self._state_repository is None:
            return None
        deadline = parse_timestamp(self._state_repository.get_value(self._state_key))
        if deadline is None:
            return None
        if deadline <= self._clock():
            self._state_repository.clear_value(key=self._state_key)
            return None
        LOGGER.info("youtube quota restored suspended_until=%s", deadline.isoformat())
        return deadline

    def _persist_deadline(self, deadline: datetime | None) -> None:
        if self._state_repository is None:
            return
        if deadline is None:
            self._state_repository.clear_value(key=self._state_key)
        else:
            self._state_repository.set_value(key=self._state_key, value=deadline.isoformat())
