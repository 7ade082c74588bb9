"""
HubSpot actions: contact lookup, ticket status, ticket creation.
"""

from __future__ import annotations

from typing import Any, Optional

from knowreply_mcp.core.actions.base import ActionHandler, NotFound
from knowreply_mcp.core.actions.models import ActionContext
from knowreply_mcp.core.errors import UpstreamError, require
from knowreply_mcp.core.validation import Schema, email, non_empty

# illustrative labels; real values depend on the portal's pipeline setup
PIPELINES = {"0": "Support Pipeline"}
STAGES = {"1": "New", "2": "Waiting on customer", "3": "Waiting on us", "4": "Closed"}

Email = email("Invalid email format.")
TicketId = non_empty("Ticket ID cannot be empty.")
ApiToken = non_empty("API token cannot be empty.")
Subject = non_empty("Ticket subject cannot be empty.")
ContactId = non_empty("Associated contact ID cannot be empty.")
Description = non_empty("Ticket description cannot be empty.")


class OptionalToken(Schema):
    token: Optional[str] = None


class RequiredToken(Schema):
    token: ApiToken


def _label(mapping: dict, value: Any) -> Any:
    return mapping.get(value, value)


class _HubSpotAction(ActionHandler):
    auth_schema = OptionalToken
    service = "HubSpot"


class GetContactByEmail(_HubSpotAction):
    class Args(Schema):
        email: Email

    name = "hubspot_getContactByEmail"
    description = "Retrieve a HubSpot contact by email address."
    args_schema = Args
    task = "retrieve the contact"
    not_found = NotFound.EMPTY_SUCCESS
    not_found_message = "Contact not found with the provided email."
    success_message = "Contact retrieved successfully."

    async def execute(self, args: Args, creds: OptionalToken, ctx: ActionContext) -> Any:
        payload = require(await self.call("search_contacts", {"email": args.email}, creds), "results")
        results = payload["results"]
        if not isinstance(results, list):
            raise UpstreamError.unexpected(payload)
        if not results:
            return self.not_found_result(args)

        contact = results[0]
        props = contact.get("properties") or {}
        name = f"{props.get('firstname') or ''} {props.get('lastname') or ''}".strip()
        return {
            "id": contact.get("id"),
            "email": props.get("email"),
            "name": name,
            "company": props.get("company"),
            "lifecycleStage": props.get("lifecyclestage"),
        }


class GetTicketStatus(_HubSpotAction):
    class Args(Schema):
        ticket_id: TicketId

    name = "hubspot_getTicketStatus"
    description = "Get the status and pipeline stage of a HubSpot ticket."
    args_schema = Args
    task = "retrieve the ticket status"
    success_message = "Ticket status retrieved successfully."

    def not_found_text(self, args: Args) -> str:
        return f"Ticket not found with ID {args.ticket_id}."

    async def execute(self, args: Args, creds: OptionalToken, ctx: ActionContext) -> Any:
        ticket = require(await self.call("get_ticket", {"ticket_id": args.ticket_id}, creds), "id")
        props = ticket.get("properties") or {}
        return {
            "id": ticket["id"],
            "subject": props.get("subject"),
            "status": _label(STAGES, props.get("hs_pipeline_stage")),
            "pipeline": _label(PIPELINES, props.get("hs_pipeline")),
            "lastUpdate": props.get("hs_lastmodifieddate") or ticket.get("updatedAt"),
        }


class CreateTicket(_HubSpotAction):
    class Args(Schema):
        subject: Subject
        contact_id: ContactId
        description: Description

    name = "hubspot_createTicket"
    description = "Create a HubSpot support ticket associated with a contact."
    args_schema = Args
    auth_schema = RequiredToken
    task = "create the ticket"
    not_found_message = "Associated contact not found. Cannot create ticket."
    success_message = "Ticket created successfully."

    async def execute(self, args: Args, creds: RequiredToken, ctx: ActionContext) -> Any:
        params = {"subject": args.subject, "content": args.description, "contact_id": args.contact_id}
        ticket = require(await self.call("create_ticket", params, creds), "id")
        props = ticket.get("properties") or {}
        return {
            "ticketId": ticket["id"],
            "subject": props.get("subject"),
            "status": _label(STAGES, props.get("hs_pipeline_stage")),
            "pipeline": _label(PIPELINES, props.get("hs_pipeline")),
            "createdAt": props.get("createdate"),
        }


HANDLERS = (GetContactByEmail, GetTicketStatus, CreateTicket)
