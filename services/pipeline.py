"""
Stylization pipeline: drives each task from upload to a terminal state
"""

import asyncio
import logging
from typing import Optional, Set

from models.events import NotificationEvent
from models.task import Task, TaskStatus
from services.notifier import NotificationChannel
from services.remote_clients import ImageDescriber, ImageGenerator
from services.storage import StorageService
from services.styles import StyleProfile, resolve_style
from services.task_manager import ImageCounter, TaskManager, utcnow

logger = logging.getLogger(__name__)

ANALYZING_PROGRESS = 25
APPLYING_STYLE_PROGRESS = 75
COMPLETED_PROGRESS = 100


class StylePipeline:
    """
    Owns the process-wide pipeline state (task store, image counter, running
    work) and runs one linear chain of remote calls per task.

    Create it at startup, call ``close()`` at shutdown. Tests build a fresh
    instance per case.
    """

    def __init__(
        self,
        task_manager: TaskManager,
        notifier: NotificationChannel,
        storage: StorageService,
        describer: ImageDescriber,
        generator: ImageGenerator,
        image_counter: Optional[ImageCounter] = None,
    ):
        self.task_manager = task_manager
        self.notifier = notifier
        self.storage = storage
        self.describer = describer
        self.generator = generator
        self.image_counter = image_counter or ImageCounter()
        self._running: Set[asyncio.Task] = set()

    @property
    def in_flight(self) -> int:
        return len(self._running)

    async def submit(self, task_id: str, image_path: str, style: str) -> Task:
        """
        Register the task and start processing it in the background.

        The task record is stored before the background work is spawned, so
        the caller can hand out the id and observers can subscribe right away.
        """
        task = self.task_manager.create_task(
            Task(task_id=task_id, style=style, created_at=utcnow())
        )
        await self.notifier.status_log(task_id, "Task created, starting processing")

        job = asyncio.create_task(self.process(task_id, image_path, style))
        self._running.add(job)
        job.add_done_callback(self._running.discard)
        return task

    async def process(self, task_id: str, image_path: str, style: str) -> None:
        """Run the pipeline for one task; failures end in the error state"""
        try:
            await self.notifier.status_log(task_id, f"Starting image processing, style: {style}")
            await self._transition(task_id, TaskStatus.ANALYZING, progress=ANALYZING_PROGRESS)

            profile = resolve_style(style)
            if profile is None:
                await self.notifier.status_log(
                    task_id, f"No transformation available for style '{style}', finishing without a result"
                )
                await self._transition(task_id, TaskStatus.COMPLETED, progress=COMPLETED_PROGRESS)
                return

            result_url = await self._apply_style(task_id, image_path, profile)

            await self._transition(task_id, TaskStatus.APPLYING_STYLE, progress=APPLYING_STYLE_PROGRESS)
            await self.notifier.status_log(task_id, "Processing completed")
            completed = await self._transition(
                task_id, TaskStatus.COMPLETED, progress=COMPLETED_PROGRESS, result_url=result_url
            )
            if completed is not None:
                await self.notifier.broadcast(NotificationEvent.artifact_ready(task_id, result_url))
                count = self.image_counter.increment()
                await self.notifier.broadcast(NotificationEvent.counter_update(count))

        except Exception as e:
            logger.exception("Error processing task %s", task_id)
            await self._transition(task_id, TaskStatus.ERROR, error_message=str(e) or type(e).__name__)

        finally:
            if not await self.storage.delete_file(image_path):
                logger.warning("Upload %s for task %s was not removed", image_path, task_id)

    async def _apply_style(self, task_id: str, image_path: str, profile: StyleProfile) -> str:
        image_bytes = await self.storage.read_file(image_path)

        await self.notifier.status_log(task_id, "Analyzing image...")
        description = await self.describer.describe_image(image_bytes, profile.description_prompt)

        await self.notifier.status_log(task_id, f"Applying {profile.name} style...")
        prompt = profile.build_prompt(description)
        generated = await self.generator.generate_image(prompt)

        if generated.data is not None:
            data = generated.data
        elif generated.url:
            data = await self.storage.download(generated.url)
        else:
            raise ValueError("Generated image has neither data nor URL")

        return await self.storage.save_artifact(data, task_id, profile.name)

    async def _transition(self, task_id: str, status: TaskStatus, **fields) -> Optional[Task]:
        task = self.task_manager.update_task(task_id, status=status, **fields)
        if task is not None:
            await self.notifier.broadcast(NotificationEvent.task_update(task))
        return task

    async def drain(self) -> None:
        """Wait for every in-flight task to reach a terminal state"""
        while self._running:
            await asyncio.gather(*list(self._running), return_exceptions=True)

    async def close(self) -> None:
        await self.drain()
