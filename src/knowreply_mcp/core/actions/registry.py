"""
Action registry.

Design:
- One registry per transport session; nothing here is process-global.
- Registering a name twice replaces the earlier handler.
- Lookups of unknown names are protocol errors, never ActionResults.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from knowreply_mcp.core.errors import INVALID_PARAMS, ActionNotFound, ProtocolError

from .base import ActionHandler
from .models import PromptTemplate


class ActionRegistry:
    def __init__(self) -> None:
        self._actions: Dict[str, ActionHandler] = {}
        self._prompts: Dict[str, PromptTemplate] = {}

    def __len__(self) -> int:
        return len(self._actions)

    def __contains__(self, name: object) -> bool:
        return name in self._actions

    # ---------------------------
    # Actions
    # ---------------------------

    def register(self, handler: ActionHandler) -> None:
        if not handler.name:
            raise ValueError(f"{handler!r} has no name")
        self._actions[handler.name] = handler

    def get(self, name: str) -> ActionHandler:
        handler = self._actions.get(name)
        if handler is None:
            raise ActionNotFound(name)
        return handler

    def find(self, name: str) -> Optional[ActionHandler]:
        return self._actions.get(name)

    def list(self) -> List[Dict[str, Any]]:
        return [self._actions[name].describe() for name in sorted(self._actions)]

    # ---------------------------
    # Prompts
    # ---------------------------

    def register_prompt(self, prompt: PromptTemplate) -> None:
        self._prompts[prompt.name] = prompt

    def list_prompts(self) -> List[Dict[str, Any]]:
        return [self._prompts[name].describe() for name in sorted(self._prompts)]

    def get_prompt(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        prompt = self._prompts.get(name)
        if prompt is None:
            raise ProtocolError(INVALID_PARAMS, f"Unknown prompt: {name}")

        arguments = arguments or {}
        values: Dict[str, str] = {}
        for arg in prompt.arguments:
            value = arguments.get(arg.name)
            if value is None:
                if arg.required:
                    raise ProtocolError(INVALID_PARAMS, f"Missing required argument: {arg.name}")
                continue
            values[arg.name] = str(value)

        return {"description": prompt.description, "messages": prompt.render(values)}

    def clear(self) -> None:
        self._actions.clear()
        self._prompts.clear()
