"""Search and lookup commands."""

from datetime import datetime
from pathlib import Path

import click

from video_harvest.dependencies import get_search_orchestrator, get_video_lookup
from video_harvest.services.errors import YouTubeServiceError
from video_harvest.services.interchange import write_video_ids, write_videos
from video_harvest.services.records import SEARCH_ORDERS, SearchOptions, VideoRecord

from .common import DATE_TYPE, as_date, bootstrap, console, echo_json_line, fail, require_one


@click.command()
@click.option("--query", "--disease", "query", help="Search phrase to send to YouTube.")
@click.option("--video-id", help="Look up a single video instead of searching.")
@click.option("--max-results", type=click.IntRange(min=1), help="Cap on returned videos.")
@click.option("--start-date", type=DATE_TYPE, help="Earliest publish date (YYYY-MM-DD).")
@click.option("--end-date", type=DATE_TYPE, help="Publish date upper bound (YYYY-MM-DD).")
@click.option("--order", type=click.Choice(sorted(SEARCH_ORDERS)), help="Result ordering.")
@click.option("--language", help="relevanceLanguage for the search.")
@click.option(
    "--output-file",
    type=click.Path(path_type=Path, dir_okay=False),
    help="Write metadata as a JSON array instead of JSON lines on stdout.",
)
@click.option(
    "--video-ids-file",
    type=click.Path(path_type=Path, dir_okay=False),
    help="Also write the fetched video ids as a JSON array.",
)
@click.option("--search-name", help="Search group recorded on every video.")
def fetch(
    query: str | None,
    video_id: str | None,
    max_results: int | None,
    start_date: datetime | None,
    end_date: datetime | None,
    order: str | None,
    language: str | None,
    output_file: Path | None,
    video_ids_file: Path | None,
    search_name: str | None,
):
    """Fetch video metadata for a search phrase or a single video id."""
    mode = require_one(query=query, video_id=video_id)
    settings = bootstrap()

    videos: list[VideoRecord] = []
    try:
        if mode == "video_id":
            assert video_id is not None
            record = get_video_lookup().lookup(video_id, search_name=search_name)
            if record is None:
                fail(f"Video not found: {video_id}")
            videos = [record]
        else:
            assert query is not None
            options = SearchOptions(
                max_results=max_results,
                start_date=as_date(start_date),
                end_date=as_date(end_date),
                years_back=settings.search_years_back,
                order=order or settings.search_default_order,
                language=language,
            )
            result = get_search_orchestrator().search_with_metadata(
                query,
                options,
                search_name=search_name,
            )
            videos = result.videos
            if result.windows_failed:
                console.print(
                    f"[yellow]{result.windows_failed} of {result.windows_planned} "
                    "windows failed; results are partial.[/yellow]"
                )
            if result.dropped_without_details:
                console.print(
                    f"[yellow]{result.dropped_without_details} search hits had no video "
                    "details (removed or private) and were skipped.[/yellow]"
                )
    except (YouTubeServiceError, ValueError) as exc:
        fail(str(exc))

    if output_file is not None:
        write_videos(output_file, videos)
        console.print(f"[green]Wrote {len(videos)} videos to[/green] {output_file}")
    else:
        for video in videos:
            echo_json_line(video.to_dict())

    if video_ids_file is not None:
        write_video_ids(video_ids_file, [video.video_id for video in videos])
        console.print(f"[green]Wrote {len(videos)} video ids to[/green] {video_ids_file}")
