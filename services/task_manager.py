"""
In-memory task store and generated-image counter
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from models.task import Task, TaskStatus

logger = logging.getLogger(__name__)


class TaskAlreadyExistsError(Exception):
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TaskManager:
    """
    Holds the current state of every task known to the process.

    Each task has a single writer (the pipeline run handling it), so no lock
    is taken. Readers get copies and may observe stale snapshots. Terminal
    tasks are kept until they are older than ``ttl_seconds``; a TTL of zero
    keeps them for the life of the process.
    """

    def __init__(self, ttl_seconds: int = 0):
        self.ttl_seconds = ttl_seconds
        self._tasks: Dict[str, Task] = {}

    def __len__(self) -> int:
        return len(self._tasks)

    def create_task(self, task: Task) -> Task:
        """Store a new task; the id must not be known yet"""
        if task.task_id in self._tasks:
            raise TaskAlreadyExistsError(f"Task {task.task_id} already exists")
        self._tasks[task.task_id] = task.model_copy()
        return task.model_copy()

    def get_task(self, task_id: str) -> Optional[Task]:
        task = self._tasks.get(task_id)
        return task.model_copy() if task else None

    def list_tasks(self) -> List[Task]:
        return [task.model_copy() for task in self._tasks.values()]

    def update_task(
        self,
        task_id: str,
        status: Optional[TaskStatus] = None,
        progress: Optional[int] = None,
        result_url: Optional[str] = None,
        error_message: Optional[str] = None,
    ) -> Optional[Task]:
        """
        Apply a partial update and return the new snapshot.

        Returns None (and logs) instead of raising when the task is unknown or
        already terminal, so a late writer can never resurrect a finished task.
        """
        task = self._tasks.get(task_id)
        if task is None:
            logger.warning("Ignoring update for unknown task %s", task_id)
            return None
        if task.is_terminal:
            logger.warning("Ignoring update for terminal task %s (%s)", task_id, task.status.value)
            return None

        now = utcnow()
        update_data = {"updated_at": now}

        if status is not None:
            update_data["status"] = status
            if status == TaskStatus.COMPLETED:
                update_data["completed_at"] = now

        if progress is not None:
            progress = max(0, min(100, progress))
            if progress < task.progress:
                logger.warning(
                    "Task %s progress %d would regress below %d, keeping current value",
                    task_id, progress, task.progress,
                )
                progress = task.progress
            update_data["progress"] = progress

        if result_url is not None:
            update_data["result_url"] = result_url

        if error_message is not None:
            update_data["error_message"] = error_message

        updated = task.model_copy(update=update_data)
        self._tasks[task_id] = updated
        return updated.model_copy()

    def purge_expired(self, now: Optional[datetime] = None) -> int:
        """Drop terminal tasks older than the TTL; returns how many were removed"""
        if self.ttl_seconds <= 0:
            return 0
        cutoff = (now or utcnow()) - timedelta(seconds=self.ttl_seconds)
        expired = [
            task_id for task_id, task in self._tasks.items()
            if task.is_terminal and (task.updated_at or task.created_at) < cutoff
        ]
        for task_id in expired:
            del self._tasks[task_id]
        if expired:
            logger.info("Purged %d expired tasks", len(expired))
        return len(expired)


class ImageCounter:
    """Process-wide count of generated images"""

    def __init__(self, start: int = 0):
        self._value = start

    @property
    def value(self) -> int:
        return self._value

    def increment(self) -> int:
        self._value += 1
        return self._value
