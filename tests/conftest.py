"""Shared pytest fixtures for VerseCue tests."""

import json

import pytest
from unittest.mock import AsyncMock, MagicMock
import httpx

from versecue.config import CaptureConfig, ClassifierConfig, DetectionConfig, VerseConfig
from versecue.models.schemas import ClassifiedReference, InputDevice, VerseText
from versecue.services.reference_parser import parse_reference


@pytest.fixture
def detection_config():
    return DetectionConfig()


@pytest.fixture
def classifier_config():
    """Groq classifier config with a key so it stays enabled."""
    return ClassifierConfig(
        provider="groq",
        groq_api_key="test-key",
        groq_model="llama-3.3-70b-versatile",
        ollama_url="http://localhost:11434",
        ollama_model="qwen3:4b",
        lmstudio_url="http://localhost:1234",
        lmstudio_model="test-model",
        timeout_seconds=5.0,
        min_transcript_chars=20,
    )


@pytest.fixture
def verse_config(tmp_path):
    return VerseConfig(
        provider="api",
        api_url="https://bible-api.test",
        translation="KJV",
        db_path=tmp_path / "verses.db",
        cache_size=3,
    )


@pytest.fixture
def capture_config():
    """Millisecond-scale timings so state machine tests run on real asyncio time."""
    return CaptureConfig(
        restart_delay_seconds=0.05,
        restart_backoff_factor=2.0,
        max_restart_delay_seconds=0.2,
        level_interval_seconds=0.01,
        level_reference=128.0,
    )


def make_response(payload, status_code: int = 200):
    """Mock httpx response whose json() returns payload."""
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = payload
    resp.text = json.dumps(payload)
    if status_code >= 400:
        resp.raise_for_status = MagicMock(side_effect=httpx.HTTPStatusError(
            f"HTTP {status_code}", request=MagicMock(), response=resp,
        ))
    else:
        resp.raise_for_status = MagicMock()
    return resp


def chat_response(content: str, status_code: int = 200):
    """Chat-completions style response wrapping the model's text."""
    return make_response({"choices": [{"message": {"content": content}}]}, status_code)


@pytest.fixture
def mock_httpx_client():
    """Mock httpx.AsyncClient; tests set client.post / client.get return values."""
    client = AsyncMock(spec=httpx.AsyncClient)
    client.post = AsyncMock(return_value=chat_response('{"references": []}'))
    client.get = AsyncMock()
    return client


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


class FakeClassifier:
    """Classifier double returning canned references and counting calls."""

    def __init__(self, items: list[tuple[str, float, str]] | None = None):
        self.items = items or []
        self.calls: list[tuple[str, str | None]] = []

    @property
    def metrics(self) -> dict:
        return {"requests": len(self.calls), "provider": "fake"}

    async def classify(self, transcript: str, context: str | None = None):
        self.calls.append((transcript, context))
        return [
            ClassifiedReference(reference=parse_reference(ref), confidence=conf, reasoning=why)
            for ref, conf, why in self.items
        ]


class FakeVerseLookup:
    """Verse lookup double: known texts, optional failing references."""

    def __init__(self, texts: dict[str, str] | None = None, failing: set[str] | None = None):
        self.texts = texts or {}
        self.failing = failing or set()
        self.calls: list[str] = []

    async def lookup(self, reference: str):
        self.calls.append(reference)
        if reference in self.failing:
            from versecue.errors import EnrichmentUnavailable
            raise EnrichmentUnavailable(reference, "backend down")
        text = self.texts.get(reference)
        if text is None:
            return None
        return VerseText(reference=reference, text=text, translation="KJV")


class FakeRecognizer:
    """Recognizer double. stop() fires on_end like a real browser recognizer."""

    def __init__(self, fail_start: Exception | None = None):
        self.on_result = None
        self.on_error = None
        self.on_end = None
        self.fail_start = fail_start
        self.start_calls = 0
        self.stop_calls = 0
        self.events: list[str] = []

    async def start(self):
        self.start_calls += 1
        self.events.append("recognizer.start")
        if self.fail_start:
            raise self.fail_start

    async def stop(self):
        self.stop_calls += 1
        self.events.append(f"recognizer.stop(handlers={'attached' if self.on_end else 'detached'})")
        if self.on_end:
            await self.on_end()

    async def end(self):
        """Simulate the recognizer ending on its own."""
        if self.on_end:
            await self.on_end()


class FakeAudio:
    """Audio input double with a settable raw amplitude."""

    def __init__(self, fail_open: Exception | None = None, amplitude: float = 64.0):
        self.fail_open = fail_open
        self.amplitude = amplitude
        self.open_calls = 0
        self.close_calls = 0
        self.is_open = False
        self.events: list[str] = []

    async def list_devices(self):
        return [InputDevice(id="mic-1", label="Pulpit mic")]

    async def open(self, device_id):
        self.open_calls += 1
        self.events.append("audio.open")
        if self.fail_open:
            raise self.fail_open
        self.is_open = True

    def sample(self) -> float:
        return self.amplitude

    async def close(self):
        self.close_calls += 1
        self.events.append("audio.close")
        self.is_open = False


@pytest.fixture
def fake_recognizer():
    return FakeRecognizer()


@pytest.fixture
def fake_audio():
    return FakeAudio()
