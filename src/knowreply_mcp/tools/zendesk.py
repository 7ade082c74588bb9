"""
Zendesk actions: most recent ticket by requester email, status update.
"""

from __future__ import annotations

from typing import Any

from knowreply_mcp.core.actions.base import ActionHandler, NotFound
from knowreply_mcp.core.actions.models import ActionContext, ActionResult
from knowreply_mcp.core.errors import UpstreamError, require
from knowreply_mcp.core.validation import Schema, email, non_empty, one_of

STATUSES = ("new", "open", "pending", "hold", "solved", "closed")

Email = email("Invalid email format.")
TicketId = non_empty("Ticket ID cannot be empty.")
Status = one_of(STATUSES, f"Invalid status. Must be one of: {', '.join(STATUSES)}.")
ApiToken = non_empty("Zendesk API token cannot be empty.")
Subdomain = non_empty("Zendesk subdomain cannot be empty.")


class ZendeskAuth(Schema):
    token: ApiToken
    subdomain: Subdomain


class _ZendeskAction(ActionHandler):
    auth_schema = ZendeskAuth
    service = "Zendesk"


class GetTicketByEmail(_ZendeskAction):
    class Args(Schema):
        email: Email

    name = "zendesk_getTicketByEmail"
    description = "Get the most recently updated Zendesk ticket of a requester."
    args_schema = Args
    task = "retrieve ticket data"
    not_found = NotFound.EMPTY_SUCCESS
    not_found_message = "No tickets found for this email."
    success_message = "Most recent ticket retrieved successfully."

    def empty_data(self, args: Args) -> Any:
        return {"email": args.email, "ticket": None}

    async def execute(self, args: Args, creds: ZendeskAuth, ctx: ActionContext) -> Any:
        payload = require(await self.call("search_tickets", {"email": args.email}, creds), "results")
        results = payload["results"]
        if not isinstance(results, list):
            raise UpstreamError.unexpected(payload)
        if not results:
            return self.not_found_result(args)

        ticket = max(results, key=lambda t: t.get("updated_at") or "")
        return {
            "email": args.email,
            "ticket": {
                "ticketId": ticket.get("id"),
                "subject": ticket.get("subject"),
                "description": ticket.get("description"),
                "status": ticket.get("status"),
                "priority": ticket.get("priority"),
                "createdAt": ticket.get("created_at"),
                "updatedAt": ticket.get("updated_at"),
            },
        }


class UpdateTicketStatus(_ZendeskAction):
    class Args(Schema):
        ticket_id: TicketId
        new_status: Status

    name = "zendesk_updateTicketStatus"
    description = "Change the status of a Zendesk ticket."
    args_schema = Args
    task = "update ticket status"
    not_found_message = "Ticket not found."
    success_message = "Ticket status updated successfully."

    async def execute(self, args: Args, creds: ZendeskAuth, ctx: ActionContext) -> Any:
        current = require(await self.call("get_ticket", {"ticket_id": args.ticket_id}, creds), "ticket")["ticket"]
        if current.get("status") == args.new_status:
            return ActionResult(
                success=True,
                data={
                    "ticketId": current.get("id"),
                    "status": current.get("status"),
                    "updatedAt": current.get("updated_at"),
                },
                message="Ticket status is already set to the requested status.",
            )

        params = {"ticket_id": args.ticket_id, "status": args.new_status}
        updated = require(await self.call("update_ticket", params, creds), "ticket")["ticket"]
        return {
            "ticketId": updated.get("id"),
            "newStatus": updated.get("status"),
            "subject": updated.get("subject"),
            "updatedAt": updated.get("updated_at"),
        }


HANDLERS = (GetTicketByEmail, UpdateTicketStatus)
