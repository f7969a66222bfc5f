"""
Notification events broadcast to connected observers
"""

from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping
from pydantic import BaseModel, ConfigDict, Field, field_validator

from models.task import Task

class EventType(str, Enum):
    STATUS_LOG = "status-log"
    TASK_UPDATE = "task-update"
    ARTIFACT_READY = "artifact-ready"
    COUNTER_UPDATE = "counter-update"

# Event names as seen by the browser client
WIRE_NAMES = {
    EventType.STATUS_LOG: "statusUpdate",
    EventType.TASK_UPDATE: "taskUpdate",
    EventType.ARTIFACT_READY: "cardGenerated",
    EventType.COUNTER_UPDATE: "updateImageCount",
}

class NotificationEvent(BaseModel):
    """Immutable description of a single state change."""

    type: EventType
    task_id: str = ""
    payload: Mapping[str, Any] = Field(default_factory=dict, validate_default=True)

    model_config = ConfigDict(frozen=True)

    @field_validator("payload")
    @classmethod
    def _read_only_payload(cls, value: Mapping[str, Any]) -> Mapping[str, Any]:
        return MappingProxyType(dict(value))

    @classmethod
    def status_log(cls, task_id: str, message: str) -> "NotificationEvent":
        return cls(type=EventType.STATUS_LOG, task_id=task_id, payload={"message": message})

    @classmethod
    def task_update(cls, task: Task) -> "NotificationEvent":
        payload: Dict[str, Any] = {"status": task.status.value, "progress": task.progress}
        if task.error_message is not None:
            payload["error"] = task.error_message
        return cls(type=EventType.TASK_UPDATE, task_id=task.task_id, payload=payload)

    @classmethod
    def artifact_ready(cls, task_id: str, result_url: str) -> "NotificationEvent":
        return cls(type=EventType.ARTIFACT_READY, task_id=task_id, payload={"resultUrl": result_url})

    @classmethod
    def counter_update(cls, count: int) -> "NotificationEvent":
        return cls(type=EventType.COUNTER_UPDATE, payload={"count": count})

    @property
    def wire_name(self) -> str:
        return WIRE_NAMES[self.type]

    def to_wire(self) -> Dict[str, Any]:
        """
        Encode the event in the shape the browser client listens for:
        ``{"event": <name>, "data": <data>}``. The counter event carries a
        bare integer; every other event carries ``taskId`` plus its payload,
        with the artifact reference exposed as ``cardUrl``.
        """
        if self.type == EventType.COUNTER_UPDATE:
            data: Any = self.payload["count"]
        elif self.type == EventType.ARTIFACT_READY:
            data = {"taskId": self.task_id, "cardUrl": self.payload["resultUrl"]}
        else:
            data = {"taskId": self.task_id, **self.payload}
        return {"event": self.wire_name, "data": data}
