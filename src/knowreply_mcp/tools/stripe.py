"""
Stripe actions: customer lookup, refunds, billing date, last invoice.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from knowreply_mcp.core.actions.base import ActionHandler, NotFound
from knowreply_mcp.core.actions.models import ActionContext, ActionResult
from knowreply_mcp.core.coerce import epoch_to_iso
from knowreply_mcp.core.errors import UpstreamError, require
from knowreply_mcp.core.validation import Schema, email, non_empty, positive_int

Email = email("Invalid email format.")
CustomerId = non_empty("Customer ID cannot be empty.")
ChargeId = non_empty("Charge ID cannot be empty.")
Cents = positive_int("Amount must be a positive integer (cents).")
SecretKey = non_empty("Stripe API key (secret key) cannot be empty.")


class StripeAuth(Schema):
    token: SecretKey


def _first(payload: Any) -> Optional[Dict[str, Any]]:
    items = require(payload, "data")["data"]
    if not isinstance(items, list):
        raise UpstreamError.unexpected(payload)
    return items[0] if items else None


class _StripeAction(ActionHandler):
    auth_schema = StripeAuth
    service = "Stripe"


class GetCustomerByEmail(_StripeAction):
    class Args(Schema):
        email: Email

    name = "stripe_getCustomerByEmail"
    description = "Retrieve a Stripe customer by email address."
    args_schema = Args
    task = "retrieve the customer"
    not_found = NotFound.EMPTY_SUCCESS
    not_found_message = "Customer not found with the provided email."
    success_message = "Customer retrieved successfully."

    async def execute(self, args: Args, creds: StripeAuth, ctx: ActionContext) -> Any:
        customer = _first(await self.call("list_customers", {"email": args.email}, creds))
        if customer is None:
            return self.not_found_result(args)
        return {
            "id": customer.get("id"),
            "name": customer.get("name"),
            "email": customer.get("email"),
            "phone": customer.get("phone"),
            "created": epoch_to_iso(customer.get("created")),
            "currency": customer.get("currency"),
            "livemode": customer.get("livemode"),
            "metadata": customer.get("metadata") or {},
        }


class IssueRefund(_StripeAction):
    class Args(Schema):
        charge_id: ChargeId
        amount: Optional[Cents] = None

    name = "stripe_issueRefund"
    description = "Issue a full or partial refund (amount in cents) for a Stripe charge."
    args_schema = Args
    task = "issue the refund"
    not_found_message = "Charge not found. Unable to issue refund."

    async def execute(self, args: Args, creds: StripeAuth, ctx: ActionContext) -> ActionResult:
        refund = require(
            await self.call("create_refund", {"charge": args.charge_id, "amount": args.amount}, creds),
            "id",
        )
        status = refund.get("status")
        data = {
            "id": refund["id"],
            "amount": refund.get("amount"),
            "charge": refund.get("charge"),
            "currency": refund.get("currency"),
            "status": status,
            "reason": refund.get("reason"),
            "created": epoch_to_iso(refund.get("created")),
        }
        return ActionResult(success=True, data=data, message=f"Refund {status}.")


class GetNextBillingDate(_StripeAction):
    class Args(Schema):
        customer_id: CustomerId

    name = "stripe_getNextBillingDate"
    description = "Get the next billing date of a customer's active subscription."
    args_schema = Args
    task = "retrieve the next billing date"
    not_found = NotFound.EMPTY_SUCCESS
    not_found_message = "No active subscriptions found for this customer."
    success_message = "Next billing date retrieved successfully."

    async def execute(self, args: Args, creds: StripeAuth, ctx: ActionContext) -> Any:
        sub = _first(await self.call("list_subscriptions", {"customer": args.customer_id}, creds))
        if sub is None:
            return self.not_found_result(args)

        plan = sub.get("plan") or {}
        items = (sub.get("items") or {}).get("data") or []
        item = items[0] if items else {}
        period_end = sub.get("current_period_end") or item.get("current_period_end")
        return {
            "customerId": sub.get("customer"),
            "subscriptionId": sub.get("id"),
            "nextBillingDate": epoch_to_iso(period_end),
            "planId": plan.get("id"),
            "planName": plan.get("nickname") or plan.get("product") or (item.get("plan") or {}).get("nickname") or "N/A",
            "status": sub.get("status"),
            "trialEndDate": epoch_to_iso(sub.get("trial_end")),
        }


class GetLastInvoice(_StripeAction):
    class Args(Schema):
        customer_id: CustomerId

    name = "stripe_getLastInvoice"
    description = "Get the most recent invoice of a Stripe customer."
    args_schema = Args
    task = "retrieve the last invoice"
    not_found = NotFound.EMPTY_SUCCESS
    not_found_message = "No invoices found for this customer."
    success_message = "Last invoice retrieved successfully."

    async def execute(self, args: Args, creds: StripeAuth, ctx: ActionContext) -> Any:
        invoice = _first(await self.call("list_invoices", {"customer": args.customer_id}, creds))
        if invoice is None:
            return self.not_found_result(args)
        return {
            "invoiceId": invoice.get("id"),
            "number": invoice.get("number"),
            "status": invoice.get("status"),
            "amountDue": invoice.get("amount_due"),
            "amountPaid": invoice.get("amount_paid"),
            "currency": invoice.get("currency"),
            "created": epoch_to_iso(invoice.get("created")),
            "dueDate": epoch_to_iso(invoice.get("due_date")),
            "hostedInvoiceUrl": invoice.get("hosted_invoice_url"),
            "invoicePdf": invoice.get("invoice_pdf"),
        }


HANDLERS = (GetCustomerByEmail, IssueRefund, GetNextBillingDate, GetLastInvoice)
