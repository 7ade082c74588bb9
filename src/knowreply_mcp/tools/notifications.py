"""
Streaming demo action: sends periodic notifications before its result.
"""

from __future__ import annotations

from typing import Any

from knowreply_mcp.core.actions.base import ActionHandler
from knowreply_mcp.core.actions.models import ActionContext, ActionResult
from knowreply_mcp.core.validation import Schema, int_range, positive_int

IntervalMs = int_range(0, 60_000, "Interval must be between 0 and 60000 milliseconds.")
Count = positive_int("Count must be a positive integer.")


class StartNotificationStream(ActionHandler):
    class Args(Schema):
        interval: IntervalMs = 100
        count: Count = 1

    name = "start-notification-stream"
    description = "Starts sending periodic notifications for testing resumability"
    args_schema = Args
    task = "stream notifications"

    async def execute(self, args: Args, creds: Any, ctx: ActionContext) -> ActionResult:
        if ctx.streamer is None:
            return ActionResult(success=False, message="Notification streaming requires a streaming transport.")
        sent = await ctx.streamer.stream(args.count, args.interval)
        return ActionResult(
            success=True,
            data={"sent": sent},
            message=f"Finished sending {args.count} notification(s).",
        )


HANDLERS = (StartNotificationStream,)
