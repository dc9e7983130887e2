"""End-to-end pipeline and API key commands."""

from datetime import datetime

import click

from video_harvest.dependencies import get_pipeline_service, get_youtube_client
from video_harvest.services.errors import AnalysisServiceError, YouTubeServiceError
from video_harvest.services.youtube_client import validate_api_key

from .common import DATE_TYPE, as_date, bootstrap, console, fail


@click.command()
@click.argument("term")
@click.option("--start-date", type=DATE_TYPE, help="Earliest publish date (YYYY-MM-DD).")
@click.option("--end-date", type=DATE_TYPE, help="Publish date upper bound (YYYY-MM-DD).")
@click.option("--max-results", type=click.IntRange(min=1), help="Cap on fetched videos.")
def pipeline(
    term: str,
    start_date: datetime | None,
    end_date: datetime | None,
    max_results: int | None,
):
    """Fetch, transcribe, analyze and store videos for TERM."""
    bootstrap()
    try:
        report = get_pipeline_service().run(
            term,
            start_date=as_date(start_date),
            end_date=as_date(end_date),
            max_results=max_results,
        )
    except (YouTubeServiceError, AnalysisServiceError, ValueError) as exc:
        fail(str(exc))

    if report.skipped:
        console.print(
            f"[yellow]Search '{report.search_name}' already exists; "
            "pass --start-date/--end-date to refresh it.[/yellow]"
        )
    console.print(f"[bold]{report.search_name}[/bold]")
    console.print(f"  videos:      {report.video_count}")
    console.print(f"  transcripts: {report.transcript_count}")
    console.print(f"  analyses:    {report.analysis_count}")
    for stage, path in report.files.items():
        console.print(f"  {stage}: {path}")


@click.command(name="check-api-key")
def check_api_key():
    """Verify the configured YouTube API key."""
    bootstrap()
    try:
        client = get_youtube_client()
    except (YouTubeServiceError, ValueError) as exc:
        fail(str(exc))

    if not validate_api_key(client):
        fail("YouTube API key was rejected.")
    console.print("[green]YouTube API key is valid.[/green]")
