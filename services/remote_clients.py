"""
Remote capability clients for image description and image generation
"""

import base64
import io
from dataclasses import dataclass
from typing import Optional, Protocol

from openai import AsyncOpenAI
from PIL import Image, UnidentifiedImageError

from config.settings import Settings

SYSTEM_PROMPT = "You are an assistant that can describe images."


class RemoteCapabilityError(Exception):
    """A remote capability answered, but not with something usable"""


@dataclass
class GeneratedImage:
    """Result of a generation call: either inline bytes or a URL to fetch"""
    data: Optional[bytes] = None
    url: Optional[str] = None


class ImageDescriber(Protocol):
    async def describe_image(self, image_bytes: bytes, prompt: str) -> str:
        """Return a natural-language description of the image."""


class ImageGenerator(Protocol):
    async def generate_image(self, prompt: str) -> GeneratedImage:
        """Generate an image from a text prompt."""


def build_openai_client(settings: Settings) -> AsyncOpenAI:
    # Timeout and retry policy live on the client so every call is bounded
    return AsyncOpenAI(
        api_key=settings.openai_api_key,
        base_url=settings.openai_base_url,
        timeout=settings.remote_timeout_seconds,
        max_retries=settings.remote_max_retries,
    )


def image_mime_type(image_bytes: bytes) -> str:
    try:
        with Image.open(io.BytesIO(image_bytes)) as img:
            return Image.MIME.get(img.format, "image/jpeg")
    except UnidentifiedImageError:
        return "image/jpeg"


class OpenAIImageDescriber:
    def __init__(self, client: AsyncOpenAI, model: str, temperature: float = 0.5):
        self.client = client
        self.model = model
        self.temperature = temperature

    async def describe_image(self, image_bytes: bytes, prompt: str) -> str:
        image_b64 = base64.b64encode(image_bytes).decode("ascii")
        data_url = f"data:{image_mime_type(image_bytes)};base64,{image_b64}"

        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": prompt},
                        {"type": "image_url", "image_url": {"url": data_url}},
                    ],
                },
            ],
            temperature=self.temperature,
        )

        if not response.choices:
            raise RemoteCapabilityError("Description service returned no choices")
        description = (response.choices[0].message.content or "").strip()
        if not description:
            raise RemoteCapabilityError("Description service returned an empty description")
        return description


class OpenAIImageGenerator:
    def __init__(self, client: AsyncOpenAI, model: str, size: str = "1024x1024"):
        self.client = client
        self.model = model
        self.size = size

    async def generate_image(self, prompt: str) -> GeneratedImage:
        response = await self.client.images.generate(
            model=self.model,
            prompt=prompt,
            n=1,
            size=self.size,
        )

        if not response.data:
            raise RemoteCapabilityError("Generation service returned no images")
        image = response.data[0]
        if image.b64_json:
            return GeneratedImage(data=base64.b64decode(image.b64_json))
        if image.url:
            return GeneratedImage(url=image.url)
        raise RemoteCapabilityError("Generation service returned neither image data nor a URL")
