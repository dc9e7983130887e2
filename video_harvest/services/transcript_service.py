from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from importlib import import_module
from typing import Any, cast

from video_harvest.services.rate_limiter import SlidingWindowRateLimiter
from video_harvest.services.records import TranscriptRecord

LOGGER = logging.getLogger("video_harvest.transcripts")

DEFAULT_TRANSCRIPT_LANGUAGES: tuple[str, ...] = ("en", "en-US", "en-GB")
AUTO_LANGUAGE_LABEL = "auto"
DEFAULT_RATE_LIMIT_MAX_REQUESTS = 5
DEFAULT_RATE_LIMIT_WINDOW_SECONDS = 10.0
RATE_LIMIT_KEY = "youtube-transcripts"


class TranscriptService:
    def __init__(
        self,
        *,
        languages: Sequence[str] = DEFAULT_TRANSCRIPT_LANGUAGES,
        rate_limiter: SlidingWindowRateLimiter | None = None,
        api_factory: Callable[[], Any] | None = None,
    ) -> None:
        normalized_languages = [language.strip() for language in languages if language.strip()]
        if not normalized_languages:
            raise ValueError("At least one preferred transcript language is required.")
        transcript_module = import_module("youtube_transcript_api")
        self._languages = normalized_languages
        self._api_factory = api_factory or transcript_module.YouTubeTranscriptApi
        self._unavailable_error: type[Exception] = transcript_module.CouldNotRetrieveTranscript
        self._rate_limiter = rate_limiter or SlidingWindowRateLimiter(
            max_requests=DEFAULT_RATE_LIMIT_MAX_REQUESTS,
            window_seconds=DEFAULT_RATE_LIMIT_WINDOW_SECONDS,
        )

    @property
    def languages(self) -> list[str]:
        return list(self._languages)

    def fetch_transcript(self, video_id: str) -> TranscriptRecord | None:
        normalized_id = video_id.strip()
        if not normalized_id:
            return None

        waits = self._rate_limiter.wait_for_slot(RATE_LIMIT_KEY)
        if waits:
            LOGGER.debug("youtube transcript throttled video_id=%s waits=%s", normalized_id, waits)

        try:
            transcript_list = self._api_factory().list(normalized_id)
            transcript, language = self._select_transcript(transcript_list)
            if transcript is None:
                LOGGER.info("youtube transcript none_listed video_id=%s", normalized_id)
                return None
            text = _join_segments(transcript.fetch())
        except self._unavailable_error as exc:
            LOGGER.info(
                "youtube transcript unavailable video_id=%s reason=%s",
                normalized_id,
                type(exc).__name__,
            )
            return None
        except Exception:
            LOGGER.warning(
                "youtube transcript failed video_id=%s",
                normalized_id,
                exc_info=True,
            )
            return None

        if not text:
            LOGGER.info("youtube transcript empty video_id=%s", normalized_id)
            return None
        LOGGER.info(
            "youtube transcript ok video_id=%s language=%s length=%s",
            normalized_id,
            language,
            len(text),
        )
        return TranscriptRecord(video_id=normalized_id, transcript=text, language=language)

    def _select_transcript(self, transcript_list: Any) -> tuple[Any | None, str]:
        try:
            return transcript_list.find_transcript(self._languages), self._languages[0]
        except self._unavailable_error:
            pass
        # Nothing in the preferred languages; take whatever the video offers.
        for transcript in transcript_list:
            return transcript, AUTO_LANGUAGE_LABEL
        return None, AUTO_LANGUAGE_LABEL


def _join_segments(fetched: Any) -> str:
    to_raw_data = getattr(fetched, "to_raw_data", None)
    raw_segments = to_raw_data() if callable(to_raw_data) else fetched
    texts: list[str] = []
    for segment in cast(list[Any], list(raw_segments)):
        raw_text = segment.get("text") if isinstance(segment, dict) else getattr(segment, "text", None)
        if isinstance(raw_text, str) and raw_text.strip():
            texts.append(raw_text.strip())
    return " ".join(texts)
