import json
from typing import Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, Field

DONE_SENTINEL = "[DONE]"
DONE_LINE = f"data: {DONE_SENTINEL}\n\n"
GENERIC_ERROR_MESSAGE = "Generation failed"

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


class StartEvent(BaseModel):
    type: Literal["start"] = "start"


class ProgressEvent(BaseModel):
    type: Literal["progress"] = "progress"
    current: int
    total: int
    category: str
    attribute: Optional[Dict[str, Any]] = None
    question: Optional[Dict[str, Any]] = None
    signal: Optional[Dict[str, Any]] = None


class CompleteEvent(BaseModel):
    type: Literal["complete"] = "complete"
    result: Dict[str, Any] = Field(default_factory=dict)
    duration: Optional[int] = Field(default=None, description="Elapsed milliseconds")


class ErrorEvent(BaseModel):
    type: Literal["error"] = "error"
    message: str = GENERIC_ERROR_MESSAGE


StreamEvent = Union[StartEvent, ProgressEvent, CompleteEvent, ErrorEvent]


def encode_event(event: StreamEvent) -> str:
    """Frame one event as a server-sent `data:` record."""
    payload = event.model_dump(mode="json", exclude_none=True)
    return f"data: {json.dumps(payload)}\n\n"


def decode_event(data: str) -> StreamEvent:
    payload = json.loads(data)
    kind = payload.get("type")
    if kind == "start":
        return StartEvent.model_validate(payload)
    if kind == "progress":
        return ProgressEvent.model_validate(payload)
    if kind == "complete":
        return CompleteEvent.model_validate(payload)
    if kind == "error":
        return ErrorEvent.model_validate(payload)
    raise ValueError(f"Unknown stream event type: {kind!r}")
