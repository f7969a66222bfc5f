"""
Shared fixtures: temporary directories, fake remote capabilities and observers
"""

import asyncio
import io
import threading

import pytest
from PIL import Image

from config.settings import Settings
from services.notifier import NotificationChannel
from services.pipeline import StylePipeline
from services.remote_clients import GeneratedImage
from services.storage import StorageService
from services.task_manager import TaskManager

GENERATED_BYTES = bytes(range(100))


class FakeDescriber:
    def __init__(self, description="a red bicycle", error=None):
        self.description = description
        self.error = error
        self.calls = []

    async def describe_image(self, image_bytes, prompt):
        self.calls.append((image_bytes, prompt))
        if self.error is not None:
            raise self.error
        return self.description


class FakeGenerator:
    def __init__(self, data=GENERATED_BYTES, url=None, error=None, gate=None):
        self.data = data
        self.url = url
        self.error = error
        self.gate = gate
        self.prompts = []

    async def generate_image(self, prompt):
        self.prompts.append(prompt)
        if self.gate is not None:
            # threading.Event so a test thread can release a run inside TestClient's loop
            while not self.gate.is_set():
                await asyncio.sleep(0.01)
        if self.error is not None:
            raise self.error
        if self.url is not None:
            return GeneratedImage(url=self.url)
        return GeneratedImage(data=self.data)


class RecordingObserver:
    def __init__(self, fail=False):
        self.messages = []
        self.fail = fail

    async def send_json(self, message):
        if self.fail:
            raise RuntimeError("connection closed")
        self.messages.append(message)

    def events(self, name, task_id=None):
        found = [m["data"] for m in self.messages if m["event"] == name]
        if task_id is not None:
            found = [d for d in found if isinstance(d, dict) and d.get("taskId") == task_id]
        return found


class StalledObserver:
    """An observer that stopped reading: sends never complete"""

    def __init__(self):
        self.attempts = 0

    async def send_json(self, message):
        self.attempts += 1
        await asyncio.Event().wait()


def make_jpeg(size=(100, 100)) -> bytes:
    buffer = io.BytesIO()
    Image.effect_noise(size, 64).convert("RGB").save(buffer, format="JPEG", quality=90)
    return buffer.getvalue()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        openai_api_key="test-key",
        upload_dir=str(tmp_path / "uploads"),
        generated_dir=str(tmp_path / "generated"),
        static_dir=str(tmp_path / "static"),
        task_ttl_seconds=0,
    )


@pytest.fixture
def describer():
    return FakeDescriber()


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
def observer():
    return RecordingObserver()


@pytest.fixture
def storage(settings):
    return StorageService(settings)


@pytest.fixture
def pipeline(settings, storage, describer, generator):
    return StylePipeline(
        task_manager=TaskManager(),
        notifier=NotificationChannel(),
        storage=storage,
        describer=describer,
        generator=generator,
    )


@pytest.fixture
def gate():
    return threading.Event()


@pytest.fixture
def jpeg_bytes():
    return make_jpeg()
