"""Shared fixtures: in-memory storage, scripted Gemini client, instant sleep."""

from io import BytesIO
from typing import Dict, List

import pytest
from PIL import Image

from pixfrog.api.retry import RetryPolicy
from pixfrog.config import IMAGE_MODEL_HIGH, IMAGE_MODEL_STANDARD
from pixfrog.core.models import GeneratedImage
from pixfrog.memory.storage import InMemoryStorage
from pixfrog.memory.style_memory import StyleMemory


def pytest_configure(config):
    config.addinivalue_line("markers", "asyncio: mark test as async")


def make_png(size=(4, 4), color=(255, 0, 0, 255)) -> bytes:
    buffer = BytesIO()
    Image.new("RGBA", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


class FakeGeminiClient:
    """
    Scripted stand-in for GeminiClient.

    Queued outcomes are returned (or raised, for exceptions) in order; once a
    queue is empty the client succeeds with a default value.
    """

    def __init__(self):
        self.text_outcomes: List = []
        self.image_outcomes: Dict[str, List] = {IMAGE_MODEL_STANDARD: [], IMAGE_MODEL_HIGH: []}
        self.text_calls: List[dict] = []
        self.image_calls: List[dict] = []
        self.default_text = "a refined prompt"
        self.default_image = GeneratedImage(make_png(), "image/png")

    def queue_text(self, *outcomes):
        self.text_outcomes.extend(outcomes)

    def queue_image(self, model, *outcomes):
        self.image_outcomes.setdefault(model, []).extend(outcomes)

    async def generate_text(self, prompt, system_instruction="", model=None, temperature=None):
        self.text_calls.append({
            "prompt": prompt,
            "system_instruction": system_instruction,
            "model": model,
            "temperature": temperature,
        })
        outcome = self.text_outcomes.pop(0) if self.text_outcomes else self.default_text
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    async def generate_image(self, parts, model=IMAGE_MODEL_STANDARD, aspect_ratio="1:1"):
        self.image_calls.append({"parts": parts, "model": model, "aspect_ratio": aspect_ratio})
        queue = self.image_outcomes.setdefault(model, [])
        outcome = queue.pop(0) if queue else self.default_image
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    def models_called(self) -> List[str]:
        return [call["model"] for call in self.image_calls]


class SleepRecorder:
    """Async sleep replacement that records requested delays and returns at once."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class Clock:
    """Monotonic fake clock in epoch milliseconds."""

    def __init__(self, start: int = 1_700_000_000_000):
        self.now = start

    def __call__(self) -> int:
        self.now += 1
        return self.now


@pytest.fixture
def fake_client():
    return FakeGeminiClient()


@pytest.fixture
def sleeper():
    return SleepRecorder()


@pytest.fixture
def retry_policy(sleeper):
    return RetryPolicy(sleep=sleeper)


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def memory(storage):
    return StyleMemory(storage, clock=Clock())


@pytest.fixture
def png_bytes():
    return make_png()
