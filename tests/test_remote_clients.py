import base64
from types import SimpleNamespace

import pytest

from conftest import make_jpeg
from services.remote_clients import (
    OpenAIImageDescriber,
    OpenAIImageGenerator,
    RemoteCapabilityError,
    build_openai_client,
    image_mime_type,
)


class FakeOpenAI:
    def __init__(self, content="a red bicycle", images=None):
        self.requests = []
        self.content = content
        self.images_data = images if images is not None else [SimpleNamespace(b64_json=None, url="https://x/y.png")]
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create_completion))
        self.images = SimpleNamespace(generate=self._generate)

    async def _create_completion(self, **kwargs):
        self.requests.append(kwargs)
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])

    async def _generate(self, **kwargs):
        self.requests.append(kwargs)
        return SimpleNamespace(data=self.images_data)


async def test_describe_sends_image_as_data_url():
    client = FakeOpenAI()
    describer = OpenAIImageDescriber(client, "gpt-4o-mini")

    jpeg = make_jpeg()
    assert await describer.describe_image(jpeg, "Describe the image.") == "a red bicycle"

    request = client.requests[0]
    assert request["model"] == "gpt-4o-mini"
    user_content = request["messages"][1]["content"]
    assert user_content[0] == {"type": "text", "text": "Describe the image."}
    assert user_content[1]["image_url"]["url"].startswith("data:image/jpeg;base64,")


async def test_empty_description_is_an_error():
    describer = OpenAIImageDescriber(FakeOpenAI(content="   "), "gpt-4o-mini")
    with pytest.raises(RemoteCapabilityError):
        await describer.describe_image(b"bytes", "Describe the image.")


async def test_generate_returns_url():
    client = FakeOpenAI()
    generator = OpenAIImageGenerator(client, "dall-e-3", "1024x1024")

    result = await generator.generate_image("A watercolor painting of a cat")
    assert result.url == "https://x/y.png"
    assert result.data is None
    assert client.requests[0] == {"model": "dall-e-3", "prompt": "A watercolor painting of a cat", "n": 1, "size": "1024x1024"}


async def test_generate_prefers_inline_bytes():
    encoded = base64.b64encode(b"inline").decode()
    client = FakeOpenAI(images=[SimpleNamespace(b64_json=encoded, url=None)])

    result = await OpenAIImageGenerator(client, "dall-e-3").generate_image("prompt")
    assert result.data == b"inline"


async def test_generate_without_images_is_an_error():
    client = FakeOpenAI(images=[])
    with pytest.raises(RemoteCapabilityError):
        await OpenAIImageGenerator(client, "dall-e-3").generate_image("prompt")


def test_client_is_bounded(settings):
    client = build_openai_client(settings)
    assert client.max_retries == settings.remote_max_retries
    assert client.timeout == settings.remote_timeout_seconds


def test_mime_type_detection():
    assert image_mime_type(make_jpeg()) == "image/jpeg"
    assert image_mime_type(b"not an image") == "image/jpeg"
