"""
Prompt templates.
"""

from __future__ import annotations

from typing import Any, Dict, List

from knowreply_mcp.core.actions.models import PromptArgument, PromptTemplate


def _greeting(values: Dict[str, str]) -> List[Dict[str, Any]]:
    return [
        {
            "role": "user",
            "content": {"type": "text", "text": f"Hello, {values['name']}! This is your friendly greeting."},
        }
    ]


GREETING = PromptTemplate(
    name="greeting-template",
    description="A simple greeting prompt template",
    arguments=[PromptArgument(name="name", description="Name to include in greeting")],
    render=_greeting,
)

PROMPTS = (GREETING,)
