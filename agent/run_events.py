"""Run stream events -- classification of assistant run events.

The run stream yields discriminated events (``event`` tag + ``data``
payload). ``classify_event`` reduces each one to a ``RunEvent`` carrying
only what the response handler acts on. Works on the SDK's typed objects
and on plain dicts.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class RunEventKind(Enum):
    RUN_CREATED = "run_created"
    MESSAGE_DELTA = "message_delta"
    MESSAGE_COMPLETED = "message_completed"
    MESSAGE_STEP_CREATED = "message_step_created"
    REQUIRES_ACTION = "requires_action"
    RUN_COMPLETED = "run_completed"
    RUN_FAILED = "run_failed"
    # Cancelled, expired or incomplete: terminal without an error notice
    RUN_ENDED = "run_ended"
    STREAM_ERROR = "stream_error"
    OTHER = "other"


RUN_FAILED_FALLBACK = "Run Failed"

_RUN_ENDED_EVENTS = (
    "thread.run.cancelled",
    "thread.run.expired",
    "thread.run.incomplete",
)


@dataclass
class ToolCallRequest:
    """One function call a run is waiting on."""
    call_id: str
    name: str
    arguments: str = "{}"

    def parse_arguments(self) -> Dict[str, Any]:
        """Decode the JSON argument blob. Raises ValueError when malformed."""
        args = json.loads(self.arguments or "{}")
        if not isinstance(args, dict):
            raise ValueError(f"Tool arguments must be a JSON object, got {type(args).__name__}")
        return args


@dataclass
class ToolOutput:
    """Answer to one ToolCallRequest, keyed by the same call id."""
    tool_call_id: str
    output: str

    def to_dict(self) -> Dict[str, str]:
        return {"tool_call_id": self.tool_call_id, "output": self.output}


@dataclass
class RunEvent:
    kind: RunEventKind
    name: str = ""
    run_id: Optional[str] = None
    text: Optional[str] = None
    tool_calls: List[ToolCallRequest] = field(default_factory=list)
    error_message: Optional[str] = None
    raw: Any = None


def _get(obj: Any, name: str, default: Any = None) -> Any:
    if obj is None:
        return default
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


def _text_value(part: Any) -> Optional[str]:
    if _get(part, "type") != "text":
        return None
    text = _get(part, "text")
    if isinstance(text, str):
        return text
    value = _get(text, "value")
    return value if isinstance(value, str) else None


def _delta_text(data: Any) -> Optional[str]:
    content = _get(_get(data, "delta"), "content") or []
    pieces = [value for value in (_text_value(part) for part in content) if value]
    return "".join(pieces) if pieces else None


def _completed_text(data: Any) -> Optional[str]:
    content = _get(data, "content") or []
    if not content:
        return None
    return _text_value(content[0])


def _tool_calls(data: Any) -> List[ToolCallRequest]:
    action = _get(data, "required_action")
    if _get(action, "type") != "submit_tool_outputs":
        return []
    calls = _get(_get(action, "submit_tool_outputs"), "tool_calls") or []
    requests = []
    for call in calls:
        function = _get(call, "function")
        requests.append(ToolCallRequest(
            call_id=_get(call, "id", ""),
            name=_get(function, "name", ""),
            arguments=_get(function, "arguments") or "{}",
        ))
    return requests


def classify_event(event: Any) -> RunEvent:
    """Map one stream event to a RunEvent."""
    name = _get(event, "event", "") or ""
    data = _get(event, "data")

    if name == "thread.run.created":
        return RunEvent(RunEventKind.RUN_CREATED, name, run_id=_get(data, "id"), raw=event)

    if name == "thread.message.delta":
        return RunEvent(RunEventKind.MESSAGE_DELTA, name, text=_delta_text(data), raw=event)

    if name == "thread.message.completed":
        return RunEvent(RunEventKind.MESSAGE_COMPLETED, name, text=_completed_text(data), raw=event)

    if name == "thread.run.step.created":
        if _get(_get(data, "step_details"), "type") == "message_creation":
            return RunEvent(RunEventKind.MESSAGE_STEP_CREATED, name, raw=event)
        return RunEvent(RunEventKind.OTHER, name, raw=event)

    if name == "thread.run.requires_action":
        calls = _tool_calls(data)
        if not calls:
            return RunEvent(RunEventKind.OTHER, name, run_id=_get(data, "id"), raw=event)
        return RunEvent(RunEventKind.REQUIRES_ACTION, name, run_id=_get(data, "id"), tool_calls=calls, raw=event)

    if name == "thread.run.completed":
        return RunEvent(RunEventKind.RUN_COMPLETED, name, run_id=_get(data, "id"), raw=event)

    if name == "thread.run.failed":
        message = _get(_get(data, "last_error"), "message") or RUN_FAILED_FALLBACK
        return RunEvent(RunEventKind.RUN_FAILED, name, run_id=_get(data, "id"), error_message=message, raw=event)

    if name in _RUN_ENDED_EVENTS:
        return RunEvent(RunEventKind.RUN_ENDED, name, run_id=_get(data, "id"), raw=event)

    if name == "error":
        message = _get(data, "message") or "Stream error"
        return RunEvent(RunEventKind.STREAM_ERROR, name, error_message=message, raw=event)

    return RunEvent(RunEventKind.OTHER, name, raw=event)
