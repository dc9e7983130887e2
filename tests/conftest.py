from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from video_harvest.dependencies import reset_cached_dependencies
from video_harvest.main import create_app
from video_harvest.repositories.database import Database


@pytest.fixture
def database(tmp_path: Path) -> Database:
    db = Database(tmp_path / "video-harvest.db")
    db.initialize()
    return db


@pytest.fixture
def runtime_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    data_dir = tmp_path / "runtime-data"
    data_dir.mkdir(parents=True, exist_ok=True)
    monkeypatch.setenv("VIDEO_HARVEST_DATA_DIR", str(data_dir))
    monkeypatch.setenv("VIDEO_HARVEST_YOUTUBE_API_KEY", "test-api-key")
    monkeypatch.setenv("VIDEO_HARVEST_LLM_MODEL", "test-model")
    reset_cached_dependencies()

    yield data_dir

    reset_cached_dependencies()


@pytest.fixture
def client(runtime_env: Path) -> Iterator[TestClient]:
    _ = runtime_env
    app = create_app()
    with TestClient(app) as test_client:
        yield test_client
