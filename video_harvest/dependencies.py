from __future__ import annotations

from functools import lru_cache
from typing import Any

from video_harvest.config import AppSettings, load_settings, require_youtube_api_key
from video_harvest.repositories.database import Database
from video_harvest.repositories.harvest_state_repository import HarvestStateRepository
from video_harvest.repositories.video_repository import VideoRepository
from video_harvest.repositories.youtube_quota_repository import YouTubeQuotaRepository
from video_harvest.services.analysis_service import (
    DEFAULT_PROMPT_LIBRARY_PATH,
    TranscriptAnalyzer,
    load_prompt_template,
)
from video_harvest.services.page_fetcher import PageFetcher
from video_harvest.services.pipeline_service import PipelineService
from video_harvest.services.quota_governor import QuotaGovernor, credential_scope
from video_harvest.services.rate_limiter import SlidingWindowRateLimiter
from video_harvest.services.search_orchestrator import SearchOrchestrator
from video_harvest.services.transcript_service import TranscriptService
from video_harvest.services.video_lookup import VideoLookup
from video_harvest.services.youtube_client import build_youtube_client


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    return load_settings(validate_api_key=False)


@lru_cache(maxsize=1)
def get_database() -> Database:
    database = Database(get_settings().db_path)
    database.initialize()
    return database


@lru_cache(maxsize=1)
def get_video_repository() -> VideoRepository:
    return VideoRepository(get_database())


@lru_cache(maxsize=None)
def get_quota_governor(api_key: str) -> QuotaGovernor:
    # One governor per credential: the quota belongs to the key, not to the session.
    settings = get_settings()
    database = get_database()
    return QuotaGovernor(
        credential_scope=credential_scope(api_key),
        reset_timezone=settings.quota_reset_timezone,
        state_repository=HarvestStateRepository(database),
        usage_repository=YouTubeQuotaRepository(database),
        daily_limit=settings.quota_daily_limit,
        warning_percent=settings.quota_warning_percent,
    )


@lru_cache(maxsize=1)
def get_youtube_client() -> Any:
    return build_youtube_client(require_youtube_api_key(get_settings()))


@lru_cache(maxsize=1)
def get_page_fetcher() -> PageFetcher:
    settings = get_settings()
    return PageFetcher(
        get_youtube_client(),
        get_quota_governor(require_youtube_api_key(settings)),
        page_size=settings.search_page_size,
        region_code=settings.youtube_region_code,
        default_language=settings.search_default_language,
    )


@lru_cache(maxsize=1)
def get_search_orchestrator() -> SearchOrchestrator:
    settings = get_settings()
    return SearchOrchestrator(
        get_page_fetcher(),
        chunk_days=settings.search_chunk_days,
        default_language=settings.search_default_language,
    )


@lru_cache(maxsize=1)
def get_video_lookup() -> VideoLookup:
    settings = get_settings()
    return VideoLookup(
        get_youtube_client(),
        get_quota_governor(require_youtube_api_key(settings)),
    )


@lru_cache(maxsize=1)
def get_transcript_service() -> TranscriptService:
    settings = get_settings()
    return TranscriptService(
        languages=settings.transcript_language_list,
        rate_limiter=SlidingWindowRateLimiter(
            max_requests=settings.transcript_rate_limit_max_requests,
            window_seconds=settings.transcript_rate_limit_window_seconds,
        ),
    )


@lru_cache(maxsize=1)
def get_transcript_analyzer() -> TranscriptAnalyzer:
    settings = get_settings()
    prompt_path = settings.prompt_library_path or DEFAULT_PROMPT_LIBRARY_PATH
    return TranscriptAnalyzer(
        load_prompt_template(prompt_path),
        base_url=settings.ollama_base_url,
        model=settings.llm_model,
        timeout_seconds=settings.llm_timeout_seconds,
    )


@lru_cache(maxsize=1)
def get_pipeline_service() -> PipelineService:
    settings = get_settings()
    return PipelineService(
        orchestrator=get_search_orchestrator(),
        transcript_service=get_transcript_service(),
        analyzer=get_transcript_analyzer(),
        repository=get_video_repository(),
        output_dir=settings.output_dir,
        search_phrase_template=settings.search_phrase_template,
        user_id=settings.default_user_id,
    )


def reset_cached_dependencies() -> None:
    get_pipeline_service.cache_clear()
    get_transcript_analyzer.cache_clear()
    get_transcript_service.cache_clear()
    get_video_lookup.cache_clear()
    get_search_orchestrator.cache_clear()
    get_page_fetcher.cache_clear()
    get_youtube_client.cache_clear()
    get_quota_governor.cache_clear()
    get_video_repository.cache_clear()
    get_database.cache_clear()
    get_settings.cache_clear()
