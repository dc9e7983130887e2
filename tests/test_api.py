from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

from fastapi.testclient import TestClient

from video_harvest.repositories.database import Database
from video_harvest.repositories.video_repository import VideoRepository
from video_harvest.services.records import AnalysisRecord, TranscriptRecord, VideoRecord


def _seed_search(data_dir: Path, search_name: str) -> None:
    database = Database(data_dir / "video-harvest.db")
    database.initialize()
    repository = VideoRepository(database)
    repository.upsert_videos(
        videos=[
            VideoRecord(
                video_id=video_id,
                title=f"Video {video_id}",
                published_at=datetime(2024, 1, 1, tzinfo=UTC),
            )
            for video_id in ("a", "b", "c", "d")
        ],
        search_name=search_name,
    )
    repository.upsert_transcripts(
        transcripts=[
            TranscriptRecord(video_id=video_id, transcript="text", language="en")
            for video_id in ("a", "b", "c")
        ]
    )
    repository.upsert_analyses(
        analyses=[
            AnalysisRecord(video_id="a", video_type="patient story"),
            AnalysisRecord(video_id="b", video_type="patient story"),
            AnalysisRecord(video_id="c", video_type="KOL interview"),
        ]
    )
    repository.upsert_search_config(
        search_name=search_name,
        search_phrase=f"{search_name} symptoms",
        user_id="default",
    )


def test_health_endpoint(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_request_id_is_echoed(client: TestClient) -> None:
    response = client.get("/health", headers={"X-Request-ID": "req-123"})

    assert response.headers["X-Request-ID"] == "req-123"


def test_search_summary_returns_counts(runtime_env: Path, client: TestClient) -> None:
    _seed_search(runtime_env, "lupus")

    response = client.post("/search", json={"disease": "  lupus "})

    assert response.status_code == 200
    body = response.json()
    assert body["search_name"] == "lupus"
    assert body["video_count"] == 4
    assert body["transcript_count"] == 3
    assert body["analysis_count"] == 3
    assert body["patient_stories_count"] == 2
    assert body["kol_interviews_count"] == 1
    assert body["llm_model"] == "test-model"
    assert datetime.fromisoformat(body["last_updated"].replace("Z", "+00:00")).tzinfo is not None


def test_search_summary_joins_keywords_into_search_name(
    runtime_env: Path,
    client: TestClient,
) -> None:
    _seed_search(runtime_env, "lupus early onset")

    response = client.post("/search", json={"disease": "lupus", "keywords": "early   onset"})

    assert response.status_code == 200
    assert response.json()["search_name"] == "lupus early onset"


def test_search_summary_requires_disease(client: TestClient) -> None:
    assert client.post("/search", json={"disease": "   "}).status_code == 400
    assert client.post("/search", json={}).status_code == 400


def test_search_summary_unknown_search_is_404(client: TestClient) -> None:
    response = client.post("/search", json={"disease": "gout"})

    assert response.status_code == 404
    assert "gout" in response.json()["detail"]
