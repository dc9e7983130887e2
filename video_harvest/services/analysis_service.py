from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any, cast
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

import yaml

from video_harvest.services.errors import AnalysisServiceError, PromptLibraryError
from video_harvest.services.records import AnalysisRecord

LOGGER = logging.getLogger("video_harvest.analysis")

PROMPT_LIBRARY_SECTION = "disease_space"
PROMPT_LIBRARY_KEY = "prompt"
DEFAULT_PROMPT_LIBRARY_PATH = Path(__file__).resolve().parent.parent / "prompts" / "prompt_library.yaml"
JSON_OBJECT_PATTERN = re.compile(r"\{[\s\S]*\}")
NOT_AVAILABLE_TRANSCRIPT = "NOT AVAILABLE"


def load_prompt_template(path: Path, *, section: str = PROMPT_LIBRARY_SECTION) -> str:
    try:
        raw_text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise PromptLibraryError(f"Could not read prompt library {path}: {exc}") from exc
    try:
        library = yaml.safe_load(raw_text)
    except yaml.YAMLError as exc:
        raise PromptLibraryError(f"Prompt library {path} is not valid YAML: {exc}") from exc

    entry = library.get(section) if isinstance(library, dict) else None
    prompt = entry.get(PROMPT_LIBRARY_KEY) if isinstance(entry, dict) else None
    if not isinstance(prompt, str) or not prompt.strip():
        raise PromptLibraryError(f"{section}.{PROMPT_LIBRARY_KEY} not found in {path}")
    return prompt


def render_prompt(template: str, *, title: str, transcript: str) -> str:
    # Prompt templates embed literal JSON, so str.format is not usable here.
    return template.replace("{title}", title).replace("{transcript}", transcript)


def extract_json_object(content: str) -> dict[str, Any] | None:
    matched = JSON_OBJECT_PATTERN.search(content)
    if matched is None:
        return None
    try:
        parsed = json.loads(matched.group(0))
    except json.JSONDecodeError:
        return None
    if not isinstance(parsed, dict):
        return None
    return cast(dict[str, Any], parsed)


class TranscriptAnalyzer:
    """Turns a transcript into an `AnalysisRecord` using a local Ollama model."""

    def __init__(
        self,
        prompt_template: str,
        *,
        base_url: str,
        model: str,
        timeout_seconds: float = 120.0,
    ) -> None:
        self._prompt_template = prompt_template
        self._generate_url = f"{base_url.rstrip('/')}/api/generate"
        self._model = model
        self._timeout_seconds = timeout_seconds

    @property
    def model(self) -> str:
        return self._model

    def analyze(self, video_id: str, transcript: str, title: str) -> AnalysisRecord | None:
        if not transcript.strip() or transcript.strip() == NOT_AVAILABLE_TRANSCRIPT:
            LOGGER.info("analysis skipped video_id=%s reason=no_transcript", video_id)
            return None

        prompt = render_prompt(self._prompt_template, title=title, transcript=transcript)
        try:
            content = self.generate(prompt)
        except AnalysisServiceError as exc:
            LOGGER.warning("analysis request_failed video_id=%s error=%s", video_id, exc)
            return None

        if not content.strip():
            LOGGER.warning("analysis empty_response video_id=%s", video_id)
            return None

        payload = extract_json_object(content)
        if payload is None:
            LOGGER.warning(
                "analysis parse_failed video_id=%s preview=%s",
                video_id,
                content[:200],
            )
            return None

        record = AnalysisRecord.from_model_payload(video_id, payload)
        LOGGER.info("analysis ok video_id=%s video_type=%s", video_id, record.video_type)
        return record

    def generate(self, prompt: str) -> str:
        status_code, payload = _post_ollama_json(
            url=self._generate_url,
            body={"model": self._model, "prompt": prompt, "stream": False},
            timeout_seconds=self._timeout_seconds,
        )
        if status_code >= 400:
            message = payload.get("error")
            raise AnalysisServiceError(
                message
                if isinstance(message, str) and message.strip()
                else f"Ollama request failed (status {status_code})."
            )
        response_text = payload.get("response")
        return response_text if isinstance(response_text, str) else ""


def _post_ollama_json(
    *,
    url: str,
    body: dict[str, Any],
    timeout_seconds: float,
) -> tuple[int, dict[str, Any]]:
    request = Request(
        url,
        data=json.dumps(body).encode("utf-8"),
        headers={
            "content-type": "application/json",
            "accept": "application/json",
            "user-agent": "video-harvest/1.0",
        },
        method="POST",
    )

    status_code = 0
    raw_body = ""
    try:
        with urlopen(request, timeout=timeout_seconds) as response:
            status_code = int(response.getcode() or 0)
            raw_body = response.read().decode("utf-8", errors="replace")
    except HTTPError as exc:
        status_code = int(exc.code)
        raw_body = exc.read().decode("utf-8", errors="replace")
    except (URLError, TimeoutError, OSError) as exc:
        raise AnalysisServiceError(f"Ollama request failed: {exc}") from exc

    return status_code, _parse_json_dict(raw_body)


def _parse_json_dict(raw_body: str) -> dict[str, Any]:
    if not raw_body.strip():
        return {}
    try:
        parsed = json.loads(raw_body)
    except json.JSONDecodeError:
        return {}
    if isinstance(parsed, dict):
        return cast(dict[str, Any], parsed)
    return {}
