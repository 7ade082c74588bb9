"""
Calendly actions.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List

from knowreply_mcp.core.actions.base import ActionHandler, NotFound
from knowreply_mcp.core.actions.models import ActionContext, ActionResult
from knowreply_mcp.core.coerce import parse_iso, utc_now_iso
from knowreply_mcp.core.errors import UpstreamError, require
from knowreply_mcp.core.validation import Schema, email, non_empty

InviteeEmail = email("Invalid email format for invitee.")
ApiToken = non_empty("Calendly API token cannot be empty.")


class CalendlyAuth(Schema):
    token: ApiToken


def _meeting(event: Dict[str, Any]) -> Dict[str, Any]:
    uri = str(event.get("uri") or "")
    return {
        "eventId": uri.rstrip("/").rsplit("/", 1)[-1] or None,
        "name": event.get("name"),
        "startTime": event.get("start_time"),
        "endTime": event.get("end_time"),
        "status": event.get("status"),
        "eventType": event.get("event_type"),
    }


class GetUpcomingMeetings(ActionHandler):
    class Args(Schema):
        email: InviteeEmail

    name = "calendly_getUpcomingMeetings"
    description = "List future Calendly meetings booked by an invitee, soonest first."
    args_schema = Args
    auth_schema = CalendlyAuth
    service = "Calendly"
    task = "retrieve upcoming meetings"
    not_found = NotFound.EMPTY_SUCCESS
    not_found_message = "No upcoming meetings found for this email."

    def empty_data(self, args: Args) -> Any:
        return {"email": args.email, "upcomingMeetings": []}

    async def execute(self, args: Args, creds: CalendlyAuth, ctx: ActionContext) -> Any:
        user = require(await self.call("get_current_user", {}, creds), "resource")["resource"]
        organization = user.get("current_organization")
        if not organization:
            raise UpstreamError.unexpected(user)

        params = {"organization": organization, "email": args.email, "min_start_time": utc_now_iso()}
        payload = require(await self.call("list_scheduled_events", params, creds), "collection")
        events = payload["collection"]
        if not isinstance(events, list):
            raise UpstreamError.unexpected(payload)

        now = datetime.now(timezone.utc)
        upcoming: List[Dict[str, Any]] = []
        for event in events:
            start = parse_iso(event.get("start_time"))
            if start is not None and start > now:
                upcoming.append(event)
        upcoming.sort(key=lambda e: parse_iso(e.get("start_time")))

        if not upcoming:
            return self.not_found_result(args)
        return ActionResult(
            success=True,
            data={"email": args.email, "upcomingMeetings": [_meeting(e) for e in upcoming]},
            message="Upcoming meetings retrieved successfully.",
        )


HANDLERS = (GetUpcomingMeetings,)
