from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException

from video_harvest.config import AppSettings
from video_harvest.dependencies import get_settings, get_video_repository
from video_harvest.models.search_contracts import (
    KOL_INTERVIEW_VIDEO_TYPE,
    PATIENT_STORY_VIDEO_TYPE,
    SearchSummaryRequest,
    SearchSummaryResponse,
)
from video_harvest.repositories.video_repository import VideoRepository

LOGGER = logging.getLogger("video_harvest.api")

router = APIRouter()


@router.post(
    "/search",
    response_model=SearchSummaryResponse,
    tags=["search"],
    operation_id="search_summary",
)
def search_summary(
    request: SearchSummaryRequest,
    repository: Annotated[VideoRepository, Depends(get_video_repository)],
    settings: Annotated[AppSettings, Depends(get_settings)],
) -> SearchSummaryResponse:
    if not request.disease:
        raise HTTPException(status_code=400, detail="disease must be a non-empty string.")

    search_name = request.search_name
    search_config = repository.get_search_config(search_name)
    if search_config is None:
        LOGGER.info("api search not_found search_name=%s", search_name)
        raise HTTPException(
            status_code=404,
            detail=f"No stored search named {search_name!r}. Run the pipeline first.",
        )

    return SearchSummaryResponse(
        search_name=search_name,
        video_count=repository.count_videos(search_name=search_name),
        transcript_count=repository.count_transcripts(search_name=search_name),
        analysis_count=repository.count_analyses(search_name=search_name),
        patient_stories_count=repository.count_analyses_by_type(
            search_name=search_name,
            video_type=PATIENT_STORY_VIDEO_TYPE,
        ),
        kol_interviews_count=repository.count_analyses_by_type(
            search_name=search_name,
            video_type=KOL_INTERVIEW_VIDEO_TYPE,
        ),
        llm_model=settings.llm_model,
        last_updated=search_config.creation_date,
    )
