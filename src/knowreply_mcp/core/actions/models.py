"""
Core action models.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional


@dataclass(frozen=True)
class ActionRequest:
    """
    One call as it arrived: args/auth are untrusted until validated.
    """
    action_name: str
    args: Any = None
    auth: Any = None


@dataclass
class ActionResult:
    """
    Uniform outcome of every action, whatever the upstream.
    success=True with data=None is a legitimate "nothing found" answer.
    """
    success: bool
    data: Any = None
    message: str = ""
    errors: Optional[Mapping[str, List[str]]] = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "data": self.data,
            "message": self.message,
            "errors": dict(self.errors) if self.errors is not None else None,
        }


@dataclass(frozen=True)
class NotificationEvent:
    level: str
    data: Any
    sequence: int
    timestamp: str

    def as_jsonrpc(self) -> Dict[str, Any]:
        return {
            "jsonrpc": "2.0",
            "method": "notifications/message",
            "params": {
                "level": self.level,
                "data": self.data,
                "_meta": {"sequence": self.sequence, "timestamp": self.timestamp},
            },
        }


@dataclass(frozen=True)
class ActionContext:
    """
    Runtime context passed to actions.
    - session_id: owning transport session
    - streamer: NotificationStreamer bound to the session (None when unused)
    - is_alive: reports whether the caller is still connected
    - extras: future-proof bag (config, policies, etc.)
    """
    session_id: str = ""
    streamer: Any = None
    is_alive: Callable[[], bool] = lambda: True
    extras: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class PromptArgument:
    name: str
    description: str = ""
    required: bool = True


@dataclass(frozen=True)
class PromptTemplate:
    """
    Named message template advertised through prompts/list.
    `render` receives the validated argument mapping and returns MCP messages.
    """
    name: str
    description: str
    arguments: List[PromptArgument]
    render: Callable[[Dict[str, str]], List[Dict[str, Any]]]

    def describe(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "arguments": [
                {"name": a.name, "description": a.description, "required": a.required} for a in self.arguments
            ],
        }
