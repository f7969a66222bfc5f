"""
Task model for tracking stylization tasks
"""

from enum import Enum
from datetime import datetime
from typing import Optional
from pydantic import BaseModel

class TaskStatus(str, Enum):
    PROCESSING = "processing"
    ANALYZING = "analyzing"
    APPLYING_STYLE = "applying_style"
    COMPLETED = "completed"
    ERROR = "error"

TERMINAL_STATUSES = frozenset({TaskStatus.COMPLETED, TaskStatus.ERROR})

class Task(BaseModel):
    task_id: str
    style: str
    status: TaskStatus = TaskStatus.PROCESSING
    created_at: datetime
    updated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    progress: int = 0
    result_url: Optional[str] = None
    error_message: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES
