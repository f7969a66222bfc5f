"""
Storage service for uploads and generated artifacts
"""

import logging
import os
import uuid
from typing import Optional

import aiofiles
import aiofiles.os
import aiohttp

from config.settings import Settings, get_settings

logger = logging.getLogger(__name__)


class ArtifactRetrievalError(Exception):
    pass


class StorageService:
    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.upload_dir = self.settings.upload_dir
        self.generated_dir = self.settings.generated_dir
        self.url_prefix = self.settings.generated_url_prefix.rstrip("/")
        self._initialize_local()

    def _initialize_local(self):
        """Create the upload scratch directory if it doesn't exist"""
        os.makedirs(self.upload_dir, exist_ok=True)

    async def save_upload(self, data: bytes, filename: Optional[str] = None) -> str:
        """Save raw upload bytes to the scratch directory and return the path"""
        if not filename:
            filename = f"{uuid.uuid4().hex}.bin"
        file_path = os.path.join(self.upload_dir, os.path.basename(filename))
        async with aiofiles.open(file_path, "wb") as f:
            await f.write(data)
        return file_path

    async def read_file(self, file_path: str) -> bytes:
        async with aiofiles.open(file_path, "rb") as f:
            return await f.read()

    async def download(self, url: str) -> bytes:
        """Fetch a remotely generated image; any non-2xx answer is a failure"""
        timeout = aiohttp.ClientTimeout(total=self.settings.download_timeout_seconds)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.get(url) as response:
                if not 200 <= response.status < 300:
                    raise ArtifactRetrievalError(
                        f"Failed to download generated image: HTTP {response.status}"
                    )
                return await response.read()

    def artifact_filename(self, task_id: str, style: str) -> str:
        return f"{task_id}_{style}.png"

    def get_file_url(self, filename: str) -> str:
        return f"{self.url_prefix}/{filename}"

    async def save_artifact(self, data: bytes, task_id: str, style: str) -> str:
        """
        Write the generated image once and return its public URL.
        The directory is created on demand; an existing one is fine.
        """
        await aiofiles.os.makedirs(self.generated_dir, exist_ok=True)
        filename = self.artifact_filename(task_id, style)
        file_path = os.path.join(self.generated_dir, filename)
        async with aiofiles.open(file_path, "wb") as f:
            await f.write(data)
        return self.get_file_url(filename)

    async def delete_file(self, file_path: str) -> bool:
        """Delete a file; failures are logged, never raised"""
        try:
            if await aiofiles.os.path.exists(file_path):
                await aiofiles.os.remove(file_path)
                return True
            return False
        except OSError as e:
            logger.warning("Could not delete %s: %s", file_path, e)
            return False
