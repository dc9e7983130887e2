"""Main CLI entry point for video-harvest."""

import click

from .commands import enrich, fetch, pipeline, storage


@click.group()
@click.version_option(version="0.1.0")
def main():
    """video-harvest - date-chunked YouTube search, transcripts and analysis."""
    pass


# Search commands
main.add_command(fetch.fetch)

# Enrichment commands
main.add_command(enrich.transcripts)
main.add_command(enrich.analyze)

# Storage commands
main.add_command(storage.store)
main.add_command(storage.init_db)

# Pipeline commands
main.add_command(pipeline.pipeline)
main.add_command(pipeline.check_api_key)


if __name__ == "__main__":
    main()
