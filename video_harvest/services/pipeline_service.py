from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path

from video_harvest.repositories.video_repository import VideoRepository
from video_harvest.services.analysis_service import TranscriptAnalyzer
from video_harvest.services.interchange import (
    stage_file_path,
    write_analyses,
    write_json_array,
    write_transcripts,
    write_video_ids,
    write_videos,
)
from video_harvest.services.records import AnalysisRecord, SearchOptions, TranscriptRecord
from video_harvest.services.search_orchestrator import SearchOrchestrator
from video_harvest.services.transcript_service import TranscriptService

LOGGER = logging.getLogger("video_harvest.pipeline")

DEFAULT_SEARCH_PHRASE_TEMPLATE = "{search_name} symptoms"


@dataclass(frozen=True)
class PipelineReport:
    search_name: str
    skipped: bool
    video_count: int
    transcript_count: int
    analysis_count: int
    transcript_failures: int = 0
    analysis_failures: int = 0
    files: dict[str, Path] = field(default_factory=dict)


class PipelineService:
    def __init__(
        self,
        *,
        orchestrator: SearchOrchestrator,
        transcript_service: TranscriptService,
        analyzer: TranscriptAnalyzer,
        repository: VideoRepository,
        output_dir: Path,
        search_phrase_template: str = DEFAULT_SEARCH_PHRASE_TEMPLATE,
        user_id: str = "default",
    ) -> None:
        self._orchestrator = orchestrator
        self._transcript_service = transcript_service
        self._analyzer = analyzer
        self._repository = repository
        self._output_dir = output_dir
        self._search_phrase_template = search_phrase_template
        self._user_id = user_id

    def build_search_phrase(self, search_name: str) -> str:
        return self._search_phrase_template.format(search_name=search_name).strip()

    def run(
        self,
        search_term: str,
        *,
        start_date: date | None = None,
        end_date: date | None = None,
        max_results: int | None = None,
    ) -> PipelineReport:
        search_name = search_term.strip()
        if not search_name:
            raise ValueError("Search term must not be empty.")

        existing = self._repository.get_search_config(search_name)
        if existing is not None and start_date is None and end_date is None:
            LOGGER.info(
                "pipeline skipped search_name=%s created=%s",
                search_name,
                existing.creation_date.isoformat(),
            )
            return PipelineReport(
                search_name=search_name,
                skipped=True,
                video_count=self._repository.count_videos(search_name=search_name),
                transcript_count=self._repository.count_transcripts(search_name=search_name),
                analysis_count=self._repository.count_analyses(search_name=search_name),
            )

        search_phrase = self.build_search_phrase(search_name)
        LOGGER.info(
            "pipeline start search_name=%s phrase=%s start_date=%s end_date=%s",
            search_name,
            search_phrase,
            start_date,
            end_date,
        )
        files: dict[str, Path] = {}

        videos = self._orchestrator.search(
            search_phrase,
            SearchOptions(max_results=max_results, start_date=start_date, end_date=end_date),
            search_name=search_name,
        )
        files["metadata"] = write_videos(self._path(search_name, "metadata"), videos)
        files["videoids"] = write_video_ids(
            self._path(search_name, "videoids"),
            [video.video_id for video in videos],
        )
        self._repository.upsert_videos(videos=videos, search_name=search_name)

        transcripts: list[TranscriptRecord] = []
        for video in videos:
            transcript = self._transcript_service.fetch_transcript(video.video_id)
            if transcript is not None:
                transcripts.append(transcript)
        files["transcripts"] = write_transcripts(
            self._path(search_name, "transcripts"),
            transcripts,
        )
        self._repository.upsert_transcripts(transcripts=transcripts)

        titles = {video.video_id: video.title for video in videos}
        analyses: list[AnalysisRecord] = []
        for transcript in transcripts:
            analysis = self._analyzer.analyze(
                transcript.video_id,
                transcript.transcript,
                titles.get(transcript.video_id, ""),
            )
            if analysis is not None:
                analyses.append(analysis)
        files["analysis"] = write_analyses(self._path(search_name, "analysis"), analyses)
        self._repository.upsert_analyses(analyses=analyses)

        self._repository.upsert_search_config(
            search_name=search_name,
            search_phrase=search_phrase,
            user_id=self._user_id,
        )
        files["search-config"] = write_json_array(
            self._path(search_name, "search-config"),
            [
                {
                    "search_name": search_name,
                    "search_phrase": search_phrase,
                    "user_id": self._user_id,
                }
            ],
        )

        report = PipelineReport(
            search_name=search_name,
            skipped=False,
            video_count=len(videos),
            transcript_count=len(transcripts),
            analysis_count=len(analyses),
            transcript_failures=len(videos) - len(transcripts),
            analysis_failures=len(transcripts) - len(analyses),
            files=files,
        )
        LOGGER.info(
            "pipeline done search_name=%s videos=%s transcripts=%s analyses=%s "
            "transcript_failures=%s analysis_failures=%s",
            search_name,
            report.video_count,
            report.transcript_count,
            report.analysis_count,
            report.transcript_failures,
            report.analysis_failures,
        )
        return report

    def _path(self, search_name: str, stage: str) -> Path:
        return stage_file_path(self._output_dir, search_name, stage)
