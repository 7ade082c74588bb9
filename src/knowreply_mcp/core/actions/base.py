"""
Action handler base class.

A handler declares its schemas, the service/task wording used in failure
messages, and its "not found" policy; `run_action` drives the validation
gates and calls `execute` with typed values.
"""

from __future__ import annotations

import enum
from typing import Any, ClassVar, Dict, Type

from knowreply_mcp.core.validation import NoCredentials, Schema, json_schema

from .models import ActionContext, ActionResult


class NotFound(enum.Enum):
    EMPTY_SUCCESS = "empty_success"
    FAILURE = "failure"


class ActionHandler:
    name: ClassVar[str] = ""
    description: ClassVar[str] = ""
    args_schema: ClassVar[Type[Schema]] = Schema
    auth_schema: ClassVar[Type[Schema]] = NoCredentials

    # upstream wording: "<service> API Error: ...", "... while trying to <task>"
    service: ClassVar[str] = ""
    task: ClassVar[str] = "complete the action"

    not_found: ClassVar[NotFound] = NotFound.FAILURE
    not_found_message: ClassVar[str] = "Resource not found."
    success_message: ClassVar[str] = "Action completed successfully."

    def __init__(self, connector: Any = None) -> None:
        self.connector = connector

    def credentials_from(self, auth: Any) -> Any:
        return auth

    async def execute(self, args: Any, creds: Any, ctx: ActionContext) -> Any:
        raise NotImplementedError

    async def call(self, operation: str, params: Dict[str, Any], creds: Any) -> Any:
        """Forward to the connector with credentials as a plain snake_case dict."""
        credentials = creds.model_dump() if isinstance(creds, Schema) else dict(creds or {})
        return await self.connector.call(operation, params, credentials)

    def empty_data(self, args: Any) -> Any:
        return None

    def not_found_text(self, args: Any) -> str:
        return self.not_found_message

    def not_found_result(self, args: Any) -> ActionResult:
        if self.not_found is NotFound.EMPTY_SUCCESS:
            return ActionResult(success=True, data=self.empty_data(args), message=self.not_found_text(args))
        return ActionResult(success=False, data=None, message=self.not_found_text(args))

    def describe(self) -> Dict[str, Any]:
        auth = json_schema(self.auth_schema)
        properties: Dict[str, Any] = {"args": json_schema(self.args_schema)}
        required = ["args"]
        if auth.get("properties"):
            properties["auth"] = auth
            required.append("auth")
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": {"type": "object", "properties": properties, "required": required},
        }

    def __repr__(self) -> str:
        return f"<{type(self).__name__} name={self.name!r}>"
