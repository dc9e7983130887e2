"""Database commands."""

from pathlib import Path

import click

from video_harvest.dependencies import get_database, get_video_repository
from video_harvest.services.errors import InterchangeFileError
from video_harvest.services.interchange import (
    read_analyses,
    read_json_array,
    read_transcripts,
    read_videos,
)

from .common import bootstrap, console, fail

EXISTING_FILE_PATH = click.Path(path_type=Path, dir_okay=False, exists=True)


@click.command(name="init-db")
def init_db():
    """Create the database schema."""
    bootstrap()
    database = get_database()
    console.print(f"[green]Database ready:[/green] {database.path}")


@click.command()
@click.option("--metadata-file", type=EXISTING_FILE_PATH, help="Video metadata JSON array.")
@click.option("--transcripts-file", type=EXISTING_FILE_PATH, help="Transcripts JSON.")
@click.option("--analysis-file", type=EXISTING_FILE_PATH, help="Analysis JSON array.")
@click.option("--search-config-file", type=EXISTING_FILE_PATH, help="Search config JSON array.")
@click.option("--search-name", help="Search group assigned to stored videos.")
def store(
    metadata_file: Path | None,
    transcripts_file: Path | None,
    analysis_file: Path | None,
    search_config_file: Path | None,
    search_name: str | None,
):
    """Load pipeline JSON files into the database."""
    if not any((metadata_file, transcripts_file, analysis_file, search_config_file)):
        fail("Provide at least one file to store.")
    settings = bootstrap()
    repository = get_video_repository()

    try:
        if metadata_file is not None:
            count = repository.upsert_videos(
                videos=read_videos(metadata_file),
                search_name=search_name,
            )
            console.print(f"[green]Stored {count} videos[/green]")
        if transcripts_file is not None:
            count = repository.upsert_transcripts(transcripts=read_transcripts(transcripts_file))
            console.print(f"[green]Stored {count} transcripts[/green]")
        if analysis_file is not None:
            count = repository.upsert_analyses(analyses=read_analyses(analysis_file))
            console.print(f"[green]Stored {count} analyses[/green]")
        if search_config_file is not None:
            stored = 0
            for item in read_json_array(search_config_file):
                if not isinstance(item, dict):
                    continue
                config_name = item.get("search_name")
                config_phrase = item.get("search_phrase")
                if not isinstance(config_name, str) or not isinstance(config_phrase, str):
                    continue
                user_id = item.get("user_id")
                repository.upsert_search_config(
                    search_name=config_name.strip(),
                    search_phrase=config_phrase.strip(),
                    user_id=user_id if isinstance(user_id, str) else settings.default_user_id,
                )
                stored += 1
            console.print(f"[green]Stored {stored} search configs[/green]")
    except InterchangeFileError as exc:
        fail(str(exc))
