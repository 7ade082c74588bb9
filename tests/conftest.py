from __future__ import annotations

from typing import Any, Dict, List, Tuple

import pytest


class StubConnector:
    """
    Connector double: answers operations from a table and counts calls.
    A table value that is an exception instance is raised instead of returned.
    """

    def __init__(self, provider: str = "stub", responses: Dict[str, Any] | None = None) -> None:
        self.provider = provider
        self.responses = dict(responses or {})
        self.calls: List[Tuple[str, Dict[str, Any], Dict[str, Any]]] = []

    async def call(self, operation, params, credentials):
        self.calls.append((operation, dict(params), dict(credentials)))
        value = self.responses[operation]
        if isinstance(value, BaseException):
            raise value
        return value


@pytest.fixture
def stub():
    def _make(provider: str = "stub", **responses: Any) -> StubConnector:
        return StubConnector(provider, responses)

    return _make
