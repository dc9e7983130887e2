"""Transcript and analysis commands."""

from pathlib import Path

import click

from video_harvest.dependencies import (
    get_transcript_analyzer,
    get_transcript_service,
    get_video_repository,
)
from video_harvest.services.errors import AnalysisServiceError, InterchangeFileError
from video_harvest.services.interchange import (
    read_transcripts,
    read_video_ids,
    read_videos,
    write_analyses,
    write_transcripts,
)
from video_harvest.services.records import AnalysisRecord, TranscriptRecord

from .common import bootstrap, console, echo_json_line, fail, require_one

FILE_PATH = click.Path(path_type=Path, dir_okay=False)
EXISTING_FILE_PATH = click.Path(path_type=Path, dir_okay=False, exists=True)


@click.command()
@click.option("--input-file", type=EXISTING_FILE_PATH, help="JSON array of video ids.")
@click.option("--video-id", help="Fetch the transcript of a single video.")
@click.option("--search-name", help="Fetch transcripts for the videos stored under a search.")
@click.option("--output-file", type=FILE_PATH, help="Write a JSON array instead of JSON lines.")
def transcripts(
    input_file: Path | None,
    video_id: str | None,
    search_name: str | None,
    output_file: Path | None,
):
    """Fetch transcripts for a list of videos."""
    mode = require_one(input_file=input_file, video_id=video_id, search_name=search_name)
    bootstrap()

    if mode == "video_id":
        assert video_id is not None
        video_ids = [video_id]
    elif mode == "search_name":
        assert search_name is not None
        video_ids = get_video_repository().list_video_ids(search_name=search_name)
        if not video_ids:
            fail(f"No stored videos for search {search_name!r}")
    else:
        assert input_file is not None
        try:
            video_ids = read_video_ids(input_file)
        except InterchangeFileError as exc:
            fail(str(exc))

    service = get_transcript_service()
    records: list[TranscriptRecord] = []
    for current_id in video_ids:
        record = service.fetch_transcript(current_id)
        if record is None:
            continue
        records.append(record)
        if output_file is None:
            echo_json_line(record.to_dict())

    if output_file is not None:
        write_transcripts(output_file, records)
        console.print(f"[green]Wrote {len(records)} transcripts to[/green] {output_file}")
    missing = len(video_ids) - len(records)
    if missing:
        console.print(f"[yellow]{missing} of {len(video_ids)} videos had no transcript.[/yellow]")


@click.command()
@click.option("--input-file", type=EXISTING_FILE_PATH, help="Transcripts JSON (array or lines).")
@click.option("--video-id", help="Fetch and analyze a single video's transcript.")
@click.option("--metadata-file", type=EXISTING_FILE_PATH, help="Metadata JSON used for titles.")
@click.option("--output-file", type=FILE_PATH, help="Write a JSON array instead of JSON lines.")
def analyze(
    input_file: Path | None,
    video_id: str | None,
    metadata_file: Path | None,
    output_file: Path | None,
):
    """Analyze transcripts with the configured LLM."""
    mode = require_one(input_file=input_file, video_id=video_id)
    bootstrap()

    titles: dict[str, str] = {}
    try:
        if metadata_file is not None:
            titles = {video.video_id: video.title for video in read_videos(metadata_file)}
        if mode == "video_id":
            assert video_id is not None
            fetched = get_transcript_service().fetch_transcript(video_id)
            if fetched is None:
                fail(f"No transcript available for {video_id}")
            transcript_records = [fetched]
        else:
            assert input_file is not None
            transcript_records = read_transcripts(input_file)
        analyzer = get_transcript_analyzer()
    except (InterchangeFileError, AnalysisServiceError) as exc:
        fail(str(exc))

    analyses: list[AnalysisRecord] = []
    for transcript in transcript_records:
        analysis = analyzer.analyze(
            transcript.video_id,
            transcript.transcript,
            titles.get(transcript.video_id, ""),
        )
        if analysis is None:
            continue
        analyses.append(analysis)
        if output_file is None:
            echo_json_line(analysis.to_dict())

    if output_file is not None:
        write_analyses(output_file, analyses)
        console.print(f"[green]Wrote {len(analyses)} analyses to[/green] {output_file}")
    skipped = len(transcript_records) - len(analyses)
    if skipped:
        console.print(f"[yellow]{skipped} transcripts could not be analyzed.[/yellow]")
